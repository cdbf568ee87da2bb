"""Core provisioning logic, independent of the web layer.

- models.py: value objects shared by the stages
- exceptions.py: error taxonomy of a token exchange
- claims.py: token response parsing and id_token claims
- directory.py: directory group lookups (ldap3)
- rbac.py: directory group -> platform role mapping
- platform/: platform management API client and services
- provisioning_service.py: the reconciliation pipeline
"""
