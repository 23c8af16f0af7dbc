"""Validation engines for container adjustments.

The package consists of:
- Configuration records (rules): policies and restrictions as loaded from disk
- Restrictions validator: technical limits on the mutations plugins make
- Policy validator: RBAC rules on subjects, plugins and namespaces
- Validator interface (provider): the pluggable default validator slot
- Validation manager: runs all of the above in order
"""
