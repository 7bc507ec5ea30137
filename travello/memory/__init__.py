from .crud import MessageStore  # noqa: F401
from .models import AiTurn, ChatTurn, UserTurn, utc_now  # noqa: F401
