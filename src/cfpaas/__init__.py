"""Cloud Foundry PaaS adapter.

Deploys applications and marketplace services to a Cloud Foundry org/space
on behalf of an external orchestrator, and reports their state back through
a listener.

Key Components:
    - domain: Descriptors, lifecycle states, error kinds and ports
    - application: Application and service drivers, profile reconciliation
    - infrastructure: Cloud Foundry client, client cache and logging
    - config: Settings loading and configuration schemas
    - cli: Command line interface
"""

__version__ = "0.1.0"
