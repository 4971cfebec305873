"""
SkillGate constants - bounds, markers and fixed user-facing texts
"""

# Plan-and-Execute bounds
MAX_REPLAN_ROUNDS = 3
MAX_ASK_USER_ROUNDS = 4
MAX_TOOL_ITERATIONS = 5

# Skill routing
FALLBACK_SKILL_NAME = "chitchat"
ROUTER_HISTORY_LIMIT = 16
ROUTER_ASSISTANT_TRUNCATE = 150
SKILL_TOP_K = 5

# Conversation memory
CHAT_MEMORY_WINDOW = 50
ENRICHED_HISTORY_MESSAGES = 6
ASK_USER_ROUNDS_MAX_ENTRIES = 10000

# Tool-server catalog fetch timeout (seconds)
TOOL_LIST_TIMEOUT_SECONDS = 5.0

# Per LLM call timeout (seconds)
LLM_CALL_TIMEOUT_SECONDS = 60.0

# A plan step starting with one of these markers asks the user instead of calling tools
ASK_USER_MARKERS = ("追问用户", "ASK_USER")
ASK_USER_SEPARATORS = ("：", ":")
DEFAULT_ASK_USER_QUESTION = "为了继续处理您的请求，请补充更多必要信息。"
ASK_USER_LIMIT_MESSAGE = (
    "抱歉，经过多次确认仍缺少完成该请求所需的信息，暂时无法继续处理。"
    "请在一条消息中提供完整信息后重试。"
)

# Last step of every plan
SYNTHESIS_STEP = "整理结果并回复用户"
SYNTHESIS_MARKERS = ("回复用户", "reply")

# Step failure text consumed by the observer
STEP_FAILURE_PREFIX = "执行失败: "

# Observer verdicts
VERDICT_OK = "OK"
VERDICT_REPLAN = "REPLAN"
OBSERVER_DEFAULT_TEXT = "OK: 观察异常，继续执行"

SYSTEM_ERROR_MESSAGE = "抱歉，系统暂时无法处理您的请求。"
