from signaldesk.scan.models import ScanProgressState, ScanSnapshot, ScanStatus
from signaldesk.scan.tracker import ScanProgressTracker

__all__ = ["ScanProgressState", "ScanProgressTracker", "ScanSnapshot", "ScanStatus"]
