"""Demo weather tool-server.

Exposes ``getWeather`` and ``getForecast`` over SSE on port 8082 with canned data.

Usage:
    python examples/tool_servers/weather_server.py
"""

import logging
import random
from datetime import date, timedelta

from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

server = FastMCP("weather-server", host="0.0.0.0", port=8082)

_CURRENT = {
    "北京": {"condition": "晴", "temperature": 18, "humidity": 35, "wind": "北风3级"},
    "上海": {"condition": "多云", "temperature": 22, "humidity": 68, "wind": "东南风2级"},
    "广州": {"condition": "小雨", "temperature": 27, "humidity": 85, "wind": "南风2级"},
    "深圳": {"condition": "阵雨", "temperature": 28, "humidity": 82, "wind": "东风3级"},
    "杭州": {"condition": "阴", "temperature": 20, "humidity": 72, "wind": "东北风2级"},
}

_CONDITIONS = ["晴", "多云", "阴", "小雨", "雷阵雨"]


@server.tool()
def getWeather(city: str) -> str:
    """查询城市的实时天气，参数 city 为中文城市名，例如 北京"""
    logger.info(f"[Weather] getWeather city={city}")
    data = _CURRENT.get(city)
    if data is None:
        return f"暂不支持查询城市「{city}」的天气"
    return (
        f"{city}当前天气：{data['condition']}，气温 {data['temperature']}°C，"
        f"湿度 {data['humidity']}%，{data['wind']}"
    )


@server.tool()
def getForecast(city: str, days: int = 3) -> str:
    """查询城市未来几天的天气预报，days 取值 1-7，默认 3"""
    logger.info(f"[Weather] getForecast city={city} days={days}")
    base = _CURRENT.get(city)
    if base is None:
        return f"暂不支持查询城市「{city}」的天气预报"
    days = max(1, min(days, 7))
    rng = random.Random(city)
    lines = [f"{city}未来 {days} 天天气预报："]
    for offset in range(1, days + 1):
        day = date.today() + timedelta(days=offset)
        low = base["temperature"] - rng.randint(4, 8)
        high = base["temperature"] + rng.randint(0, 4)
        lines.append(f"{day.isoformat()} {rng.choice(_CONDITIONS)} {low}~{high}°C")
    return "\n".join(lines)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s - %(message)s")
    server.run(transport="sse")
