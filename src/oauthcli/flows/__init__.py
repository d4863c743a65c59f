"""Authentication flows: the flow interface and its dispatcher.

Re-exports the public API so callers can write::

    from oauthcli.flows import FlowManager, create_default_manager
"""

from oauthcli.flows.base import AuthFlow
from oauthcli.flows.manager import FlowManager, create_default_manager

__all__ = ["AuthFlow", "FlowManager", "create_default_manager"]
