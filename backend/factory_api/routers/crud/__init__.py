"""
Generic controller and module assembler.
"""

from .controller import CrudController, EndpointFlags
from .module import CrudModule, CrudModuleOptions, get_event_bus

__all__ = ["CrudController", "EndpointFlags", "CrudModule", "CrudModuleOptions", "get_event_bus"]
