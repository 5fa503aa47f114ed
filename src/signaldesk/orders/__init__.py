"""Order workflows and the helpers they share."""

from signaldesk.orders.close_flow import ClosePositionWorkflow, Position
from signaldesk.orders.equity_flow import EquityOrderWorkflow
from signaldesk.orders.errors import BlockingError, classify_blocking_error
from signaldesk.orders.option_flow import OptionOrderWorkflow
from signaldesk.orders.workflow import OrderWorkflow

__all__ = [
    "BlockingError",
    "ClosePositionWorkflow",
    "EquityOrderWorkflow",
    "OptionOrderWorkflow",
    "OrderWorkflow",
    "Position",
    "classify_blocking_error",
]
