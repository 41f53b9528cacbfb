"""
dnsspy - spy on the DNS requests made by your EC2 instances in (almost) real time

Route53 Resolver query logs are delivered to a CloudWatch Logs log group, which
is tailed by the engine in ``dnsspy.tail``.
"""

__version__ = "0.1.0"
