"""pam_python module file; the hooks live in the installed aurora_email package."""

from aurora_email.pam_hooks import pam_sm_acct_mgmt, pam_sm_authenticate, pam_sm_setcred

__all__ = ["pam_sm_acct_mgmt", "pam_sm_authenticate", "pam_sm_setcred"]
