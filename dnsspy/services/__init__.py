"""
AWS service layer: log queries and resource provisioning
"""
