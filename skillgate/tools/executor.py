"""
SkillGate Tool Executor - tool calling loop over remote tool handles
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..constants import MAX_TOOL_ITERATIONS
from ..mcp.manager import ToolConnectionManager
from ..mcp.models import MCPTool
from ..protocols import LLMClientProtocol
from .models import ToolResult, ToolRunResult

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Runs an LLM conversation with remote tools bound, executing every tool
    call through the ToolConnectionManager until the LLM answers in text.

    Usage:
        executor = ToolExecutor(llm_client, connection_manager)
        result = await executor.run_with_tools(
            messages=[{"role": "user", "content": "查询北京天气"}],
            tools=resolved_tools,
        )
    """

    def __init__(self, llm_client: LLMClientProtocol, connection_manager: ToolConnectionManager):
        if llm_client is None:
            raise ValueError("llm_client is required")
        self.llm_client = llm_client
        self.connection_manager = connection_manager

    async def run_with_tools(
        self,
        messages: List[Dict[str, Any]],
        tools: List[MCPTool],
        max_iterations: int = MAX_TOOL_ITERATIONS,
        llm_config: Optional[Dict[str, Any]] = None,
    ) -> ToolRunResult:
        """
        Run conversation with tool calling loop

        Args:
            messages: Conversation messages
            tools: Resolved tool handles the LLM may call
            max_iterations: Maximum LLM rounds
            llm_config: Optional LLM configuration

        Returns:
            ToolRunResult with the final text and the number of tool calls made
        """
        tools_by_name = {tool.qualified_name: tool for tool in tools}
        messages = list(messages)
        calls_made = 0

        for iteration in range(max_iterations):
            logger.debug(f"Tool loop iteration {iteration + 1}/{max_iterations}")
            response = await self.llm_client.chat_completion(
                messages=messages,
                tools=tools or None,
                config=llm_config,
            )

            if not response.tool_calls:
                return ToolRunResult(
                    content=response.content or "",
                    tool_calls=calls_made,
                    iterations=iteration + 1,
                )

            messages.append(self._build_assistant_message(response.content, response.tool_calls))
            for tool_call in response.tool_calls:
                result = await self._execute_tool(tool_call, tools_by_name)
                calls_made += 1
                messages.append(self._tool_result_to_message(result))
                logger.info(
                    f"Tool '{tool_call.name}' executed: {'error' if result.is_error else 'success'}"
                )

        logger.error(f"Tool execution exceeded {max_iterations} iterations")
        return ToolRunResult(
            content=f"工具调用超过 {max_iterations} 轮仍未得到结论",
            tool_calls=calls_made,
            iterations=max_iterations,
        )

    async def _execute_tool(self, tool_call, tools_by_name: Dict[str, MCPTool]) -> ToolResult:
        tool = tools_by_name.get(tool_call.name)
        if tool is None:
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f"Error: Unknown tool '{tool_call.name}'",
                is_error=True,
            )

        arguments = tool_call.arguments if isinstance(tool_call.arguments, dict) else {}
        result = await self.connection_manager.call_tool(tool, arguments)
        return ToolResult(tool_call_id=tool_call.id, content=result.text, is_error=result.is_error)

    def _build_assistant_message(self, content: Optional[str], tool_calls: List) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": content,
            "tool_calls": [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {
                        "name": tc.name,
                        "arguments": json.dumps(tc.arguments, ensure_ascii=False)
                        if isinstance(tc.arguments, dict) else tc.arguments,
                    },
                }
                for tc in tool_calls
            ],
        }

    def _tool_result_to_message(self, result: ToolResult) -> Dict[str, Any]:
        return {
            "role": "tool",
            "tool_call_id": result.tool_call_id,
            "content": result.content,
        }
