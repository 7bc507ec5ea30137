from .orchestrator import ChatExchange, ChatMetrics, ChatOrchestrator, ChatRequest, ChatState  # noqa: F401
from .session import HistoryPage, SessionService  # noqa: F401
