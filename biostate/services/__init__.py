from .dashboard import DashboardService, dashboard_service, merge_pending_logs
from .state_cache import DerivedStateCache, state_cache, state_fingerprint
