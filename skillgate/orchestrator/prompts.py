"""Prompt builders for routing, planning, step execution, observation and synthesis.

Each builder returns the chat messages for one LLM call. Prompts are written
in Chinese because the planner/observer protocol markers ("追问用户", "OK",
"REPLAN") are matched literally by ``parsing``.
"""

from typing import Dict, List, Sequence, Tuple

from ..constants import ASK_USER_MARKERS, FALLBACK_SKILL_NAME, SYNTHESIS_STEP
from ..models import ChatMessage
from ..skills.models import SkillDefinition
from .models import StepResult

ASK_USER_MARKER = ASK_USER_MARKERS[0]

# (user message, expected router lines)
ROUTER_EXAMPLES: List[Tuple[str, List[str]]] = [
    ("北京天气怎么样", ["weather|查询北京的天气"]),
    ("查一下我的订单", ["order-query|查询用户的订单"]),
    ("帮我退款", ["refund|为用户的订单申请退款"]),
    ("物流到哪了", ["logistics|查询订单的物流状态"]),
    ("有哪些商品", ["data-analysis|查询商品列表"]),
    ("统计一下销售额", ["data-analysis|统计销售额"]),
    ("你好", ["chitchat|和用户打招呼"]),
    (
        "上海明天会下雨吗？顺便查一下订单ORD20250201001的物流",
        ["weather|查询上海明天的天气预报", "logistics|查询订单ORD20250201001的物流状态"],
    ),
]

Messages = List[Dict[str, str]]


def _messages(system: str, user: str) -> Messages:
    return [
        {"role": "system", "content": system.strip()},
        {"role": "user", "content": user.strip()},
    ]


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------

def render_history(history: Sequence[ChatMessage], assistant_truncate: int) -> str:
    if not history:
        return "（无）"
    lines = []
    for message in history:
        if message.role == "assistant":
            text = message.text
            if len(text) > assistant_truncate:
                text = text[:assistant_truncate] + "..."
            lines.append(f"助手: {text}")
        else:
            lines.append(f"用户: {message.text}")
    return "\n".join(lines)


def build_router_messages(
    user_message: str,
    candidates: Sequence[SkillDefinition],
    history: Sequence[ChatMessage],
    assistant_truncate: int,
    fallback_skill: str = FALLBACK_SKILL_NAME,
) -> Messages:
    names = {skill.name for skill in candidates}
    skill_lines = "\n".join(f"- {skill.name}: {skill.description}" for skill in candidates)
    example_lines = []
    for message, lines in ROUTER_EXAMPLES:
        if all(line.split("|", 1)[0] in names for line in lines):
            example_lines.append(f"用户: {message}\n输出:\n" + "\n".join(lines))
    examples = "\n\n".join(example_lines) or "（无）"

    system = f"""
你是一个意图路由器，负责把用户消息分配给最合适的技能。

可用技能:
{skill_lines}

规则:
- 每行输出一个意图，格式为 `技能名|子任务描述`
- 用户消息包含多个独立请求时，按用户提及的顺序输出多行
- 子任务描述必须完整、可独立执行，包含订单号、城市等关键参数
- 结合对话历史理解省略和指代；如果用户是在回答助手的追问，继续路由到原来的技能
- 技能名只能从可用技能中选择；无法匹配时使用 {fallback_skill}
- 只输出意图行，不要输出任何解释

示例:
{examples}
"""
    user = f"""
对话历史:
{render_history(history, assistant_truncate)}

当前用户消息: {user_message}
"""
    return _messages(system, user)


# ---------------------------------------------------------------------------
# Plan-and-Execute
# ---------------------------------------------------------------------------

def render_completed_steps(completed: Sequence[StepResult]) -> str:
    if not completed:
        return "（无）"
    return "\n".join(f"步骤「{item.step}」结果: {item.result}" for item in completed)


def build_planning_messages(
    skill_prompt: str,
    tool_signatures: str,
    request: str,
    completed: Sequence[StepResult],
    replan_reason: str = "",
) -> Messages:
    system = f"""
{skill_prompt}

你是任务规划器。请根据用户请求和可用工具，制定逐步执行计划。

可用工具:
{tool_signatures}

规划规则:
1. 每行一个步骤，每个步骤是一个可以独立执行的原子操作，不要编号，不要输出其他内容
2. 如果调用工具所需的参数（例如订单号、城市）在用户请求和对话中都找不到，第一步必须是 `{ASK_USER_MARKER}：<要问用户的具体问题>`，且计划只包含这一步
3. 如果只是工具能力有限而不是缺少参数，不要追问用户，尽力执行并在最终回复中说明限制
4. 最后一步固定为「{SYNTHESIS_STEP}」
"""
    parts = [f"用户请求:\n{request}"]
    if completed:
        parts.append(f"已完成的步骤:\n{render_completed_steps(completed)}")
    if replan_reason:
        parts.append(f"需要重新规划的原因:\n{replan_reason}\n请基于已完成步骤的结果，为剩余工作生成新的计划。")
    return _messages(system, "\n\n".join(parts))


def build_step_messages(
    skill_prompt: str,
    step: str,
    request: str,
    completed: Sequence[StepResult],
) -> Messages:
    system = f"""
{skill_prompt}

你正在按计划逐步执行任务。只完成当前这一步：需要数据时调用工具，然后简洁地给出这一步的结果。
"""
    user = f"""
当前步骤: {step}

用户请求:
{request}

之前步骤的结果:
{render_completed_steps(completed)}
"""
    return _messages(system, user)


def build_observer_messages(step: str, result: str, remaining: Sequence[str], result_limit: int = 500) -> Messages:
    if len(result) > result_limit:
        result = result[:result_limit] + "..."
    remaining_text = "\n".join(f"- {s}" for s in remaining) or "（无）"
    system = """
你是执行观察者。判断刚执行的步骤结果能否支撑剩余计划继续执行。

只输出一行:
- 结果正常、可以继续时输出 `OK: <简短说明>`
- 步骤失败、结果与预期不符、或剩余计划已不再适用时输出 `REPLAN: <原因>`
"""
    user = f"""
步骤: {step}
结果: {result}

剩余计划:
{remaining_text}
"""
    return _messages(system, user)


def build_final_answer_messages(skill_prompt: str, user_message: str, completed: Sequence[StepResult]) -> Messages:
    steps_text = "\n\n".join(f"步骤「{item.step}」结果:\n{item.result}" for item in completed) or "（无）"
    system = f"""
{skill_prompt}

请根据各步骤的执行结果，用自然、简洁的语言直接回答用户。不要提及内部步骤或工具名称；如有执行失败或能力限制，如实说明。
"""
    user = f"""
用户请求: {user_message}

执行结果:
{steps_text}
"""
    return _messages(system, user)


# ---------------------------------------------------------------------------
# Multi-intent summary
# ---------------------------------------------------------------------------

RESULT_SEPARATOR = "\n\n---\n\n"


def format_intent_result(sub_task: str, content: str) -> str:
    return f"【{sub_task}】\n{content}"


def build_summary_messages(user_message: str, results: Sequence[str]) -> Messages:
    system = """
用户在一条消息中提出了多个请求，下面是每个请求各自的处理结果。
请把它们整合成一条连贯、自然的回复：保留每个结果中的关键信息，按用户提问的顺序组织，不要遗漏任何一个请求。
"""
    user = f"""
用户原始消息: {user_message}

各任务结果:
{RESULT_SEPARATOR.join(results)}
"""
    return _messages(system, user)
