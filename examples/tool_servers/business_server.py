"""Demo business tool-server: orders, refunds, logistics and read-only SQL.

Serves ``queryOrder``, ``applyRefund``, ``trackLogistics`` and ``queryDatabase``
over SSE on port 8081. Data lives in an in-memory SQLite database seeded on startup.

Usage:
    python examples/tool_servers/business_server.py
"""

import json
import logging
from typing import Optional

import aiosqlite
from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

server = FastMCP("business-server", host="0.0.0.0", port=8081)

_SCHEMA = """
CREATE TABLE products (id INTEGER PRIMARY KEY, name TEXT, category TEXT, price REAL, stock INTEGER);
CREATE TABLE orders (order_no TEXT PRIMARY KEY, username TEXT, product_name TEXT,
                     amount REAL, status TEXT, created_at TEXT);
CREATE TABLE logistics (order_no TEXT PRIMARY KEY, company TEXT, status TEXT,
                        location TEXT, updated_at TEXT);
"""

_PRODUCTS = [
    (1, "无线蓝牙耳机", "数码", 299.0, 120),
    (2, "机械键盘", "数码", 459.0, 45),
    (3, "保温杯", "家居", 89.0, 300),
    (4, "运动跑鞋", "服饰", 599.0, 60),
    (5, "空气净化器", "家电", 1299.0, 18),
]

_ORDERS = [
    ("ORD20250201001", "zhangsan", "无线蓝牙耳机", 299.0, "已发货", "2025-02-01 10:12:00"),
    ("ORD20250201002", "zhangsan", "保温杯", 89.0, "已签收", "2025-02-01 15:40:00"),
    ("ORD20250203001", "lisi", "机械键盘", 459.0, "待发货", "2025-02-03 09:05:00"),
    ("ORD20250205001", "wangwu", "空气净化器", 1299.0, "已发货", "2025-02-05 20:31:00"),
]

_LOGISTICS = [
    ("ORD20250201001", "顺丰速运", "运输中", "上海转运中心", "2025-02-02 08:30:00"),
    ("ORD20250201002", "中通快递", "已签收", "北京市朝阳区", "2025-02-03 14:02:00"),
    ("ORD20250205001", "京东物流", "派送中", "杭州市西湖区", "2025-02-07 09:45:00"),
]

_REFUNDABLE = {"待发货", "已发货", "已签收"}

_db: Optional[aiosqlite.Connection] = None


async def _get_db() -> aiosqlite.Connection:
    global _db
    if _db is None:
        _db = await aiosqlite.connect(":memory:")
        _db.row_factory = aiosqlite.Row
        await _db.executescript(_SCHEMA)
        await _db.executemany("INSERT INTO products VALUES (?, ?, ?, ?, ?)", _PRODUCTS)
        await _db.executemany("INSERT INTO orders VALUES (?, ?, ?, ?, ?, ?)", _ORDERS)
        await _db.executemany("INSERT INTO logistics VALUES (?, ?, ?, ?, ?)", _LOGISTICS)
        await _db.commit()
        logger.info("[Business] Demo database seeded")
    return _db


@server.tool()
async def queryOrder(orderNo: str = "", username: str = "") -> str:
    """根据订单号 orderNo 或用户名 username 查询订单，至少提供一个"""
    if not orderNo and not username:
        return "请提供订单号或用户名"
    db = await _get_db()
    if orderNo:
        cursor = await db.execute("SELECT * FROM orders WHERE order_no = ?", (orderNo,))
    else:
        cursor = await db.execute("SELECT * FROM orders WHERE username = ?", (username,))
    rows = [dict(row) for row in await cursor.fetchall()]
    if not rows:
        return "未找到相关订单"
    return json.dumps(rows, ensure_ascii=False)


@server.tool()
async def applyRefund(orderNo: str, reason: str = "用户申请退款") -> str:
    """为订单 orderNo 申请退款，reason 为退款原因"""
    db = await _get_db()
    cursor = await db.execute("SELECT status FROM orders WHERE order_no = ?", (orderNo,))
    row = await cursor.fetchone()
    if row is None:
        return f"订单 {orderNo} 不存在"
    if row["status"] not in _REFUNDABLE:
        return f"订单 {orderNo} 当前状态为「{row['status']}」，无法申请退款"
    await db.execute("UPDATE orders SET status = '退款中' WHERE order_no = ?", (orderNo,))
    await db.commit()
    logger.info(f"[Business] Refund accepted for {orderNo}: {reason}")
    return f"订单 {orderNo} 的退款申请已受理，原因：{reason}，预计 1-3 个工作日原路退回"


@server.tool()
async def trackLogistics(orderNo: str) -> str:
    """查询订单 orderNo 的物流状态"""
    db = await _get_db()
    cursor = await db.execute("SELECT * FROM logistics WHERE order_no = ?", (orderNo,))
    row = await cursor.fetchone()
    if row is None:
        return f"订单 {orderNo} 暂无物流信息"
    return (
        f"订单 {orderNo} 由{row['company']}承运，当前状态：{row['status']}，"
        f"最新位置：{row['location']}，更新时间：{row['updated_at']}"
    )


@server.tool()
async def queryDatabase(sql: str) -> str:
    """执行只读 SQL 查询（仅支持 SELECT），返回 JSON 格式的结果行"""
    if not sql.strip().lower().startswith("select"):
        return "只支持 SELECT 查询"
    db = await _get_db()
    try:
        cursor = await db.execute(sql)
        rows = [dict(row) for row in await cursor.fetchall()]
    except aiosqlite.Error as e:
        return f"SQL 执行失败: {e}"
    return json.dumps(rows[:100], ensure_ascii=False)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(name)s - %(message)s")
    server.run(transport="sse")
