"""IMAP 请求/响应编解码

aioimaplib 只返回原始响应行，这里负责：
- 构造 SEARCH SINCE 条件
- 解析 SEARCH / SELECT / EXISTS 响应
- 把 UID FETCH 响应解析为 MessageEnvelope
"""

import email
import logging
import re
from datetime import datetime, timedelta, timezone
from email.header import decode_header
from email.utils import getaddresses
from typing import Iterable, List, Optional, Tuple, Union

from domain.sync.value_objects.message_envelope import MessageEnvelope

logger = logging.getLogger(__name__)

ResponseLine = Union[bytes, bytearray, str]

# 元数据 + 发件人/主题头，不标记已读
FETCH_ITEMS = "(UID FLAGS INTERNALDATE RFC822.SIZE BODY.PEEK[HEADER.FIELDS (FROM SUBJECT)])"

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_FETCH_START = re.compile(r"^(?:\*\s+)?\d+ FETCH \(", re.IGNORECASE)
_LITERAL_MARKER = re.compile(r"\{(\d+)\}\s*$")
_EXISTS = re.compile(r"^(?:\*\s+)?(\d+) EXISTS\b", re.IGNORECASE)
_UIDNEXT = re.compile(r"\[UIDNEXT (\d+)\]", re.IGNORECASE)
_UID = re.compile(r"\bUID (\d+)", re.IGNORECASE)
_FLAGS = re.compile(r"\bFLAGS \(([^)]*)\)", re.IGNORECASE)
_INTERNALDATE = re.compile(r'\bINTERNALDATE "([^"]+)"', re.IGNORECASE)
_SIZE = re.compile(r"\bRFC822\.SIZE (\d+)", re.IGNORECASE)


def _to_text(line: ResponseLine) -> str:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line).decode("utf-8", errors="replace")
    return str(line)


def format_since_criterion(since: datetime) -> str:
    """
    构造 SEARCH SINCE 条件

    SINCE 只按日期过滤且依赖服务器时区，因此向前多取一天，
    精确的时间边界由客户端再过滤。

    Args:
        since: 起始时间

    Returns:
        形如 "SINCE 01-Jan-2024" 的条件
    """
    day = (since.astimezone(timezone.utc) - timedelta(days=1)).date()
    return f"SINCE {day.day:02d}-{_MONTHS[day.month - 1]}-{day.year}"


def parse_search_uids(lines: Iterable[ResponseLine]) -> List[int]:
    """
    解析 UID SEARCH 响应

    Args:
        lines: 响应行（可能带 "SEARCH" 前缀，末尾为完成提示）

    Returns:
        UID 列表（升序）
    """
    uids: List[int] = []
    for line in lines:
        tokens = _to_text(line).replace("*", " ").split()
        if tokens and tokens[0].upper() == "SEARCH":
            tokens = tokens[1:]
        if tokens and all(token.isdigit() for token in tokens):
            uids.extend(int(token) for token in tokens)
    return sorted(set(uids))


def parse_exists(line: ResponseLine) -> Optional[int]:
    """解析 "N EXISTS" 行，不匹配返回 None"""
    match = _EXISTS.match(_to_text(line).strip())
    return int(match.group(1)) if match else None


def parse_select_response(lines: Iterable[ResponseLine]) -> Tuple[int, Optional[int]]:
    """
    解析 SELECT 响应

    Returns:
        (exists, uidnext) 元组，缺失的 EXISTS 视为 0
    """
    exists = 0
    uidnext: Optional[int] = None
    for line in lines:
        text = _to_text(line)
        count = parse_exists(text)
        if count is not None:
            exists = count
            continue
        match = _UIDNEXT.search(text)
        if match:
            uidnext = int(match.group(1))
    return exists, uidnext


def parse_internaldate(value: str) -> datetime:
    """
    解析 INTERNALDATE，如 "17-Jul-1996 02:44:25 -0700"

    Returns:
        UTC 时间
    """
    return datetime.strptime(value.strip(), "%d-%b-%Y %H:%M:%S %z").astimezone(timezone.utc)


def decode_header_value(value: Optional[str]) -> str:
    """
    解码邮件头部值（处理编码）

    Args:
        value: 原始头部值

    Returns:
        解码后的字符串
    """
    if not value:
        return ""

    result_parts = []
    for part, charset in decode_header(value):
        if isinstance(part, bytes):
            try:
                decoded = part.decode(charset or "utf-8", errors="replace")
            except (LookupError, UnicodeDecodeError):
                decoded = part.decode("utf-8", errors="replace")
            result_parts.append(decoded)
        else:
            result_parts.append(part)

    return "".join(result_parts)


def _parse_headers(raw: bytes) -> Tuple[Tuple[str, ...], str]:
    """从 HEADER.FIELDS 字面量中取出发件人地址与主题"""
    if not raw:
        return (), ""
    msg = email.message_from_bytes(raw)
    senders = tuple(
        address
        for _, address in getaddresses([decode_header_value(v) for v in msg.get_all("From", [])])
        if address
    )
    subject = decode_header_value(msg.get("Subject", "")).strip()
    return senders, subject


def parse_fetch_response(account_id: str, lines: Iterable[ResponseLine]) -> List[MessageEnvelope]:
    """
    解析 UID FETCH 响应

    每条记录以 "N FETCH (" 开头；"{n}" 结尾的行之后紧跟头部字面量。
    服务器可能把部分属性放在字面量之后，因此同一记录的非字面量行
    会拼接在一起再提取属性。缺少 UID 或 INTERNALDATE 的记录会被跳过。

    Args:
        account_id: 账号标识
        lines: aioimaplib 返回的响应行

    Returns:
        邮件信封列表（按响应顺序）
    """
    records: List[dict] = []
    current: Optional[dict] = None
    expect_literal = False

    for line in lines:
        if expect_literal or isinstance(line, bytearray):
            expect_literal = False
            if current is not None:
                current["header"] += bytes(line) if not isinstance(line, str) else line.encode()
            continue

        text = _to_text(line)
        if _FETCH_START.match(text):
            current = {"meta": text, "header": b""}
            records.append(current)
        elif current is not None:
            current["meta"] += " " + text

        expect_literal = bool(_LITERAL_MARKER.search(text))

    envelopes: List[MessageEnvelope] = []
    for record in records:
        envelope = _to_envelope(account_id, record["meta"], record["header"])
        if envelope is not None:
            envelopes.append(envelope)
    return envelopes


def _to_envelope(account_id: str, meta: str, header: bytes) -> Optional[MessageEnvelope]:
    uid_match = _UID.search(meta)
    date_match = _INTERNALDATE.search(meta)
    if not uid_match or not date_match:
        logger.debug(f"Skipping FETCH record without UID/INTERNALDATE: {meta[:120]}")
        return None

    try:
        arrival_time = parse_internaldate(date_match.group(1))
    except ValueError:
        logger.debug(f"Skipping FETCH record with bad INTERNALDATE: {date_match.group(1)}")
        return None

    flags_match = _FLAGS.search(meta)
    size_match = _SIZE.search(meta)
    senders, subject = _parse_headers(header)

    return MessageEnvelope(
        account_id=account_id,
        uid=int(uid_match.group(1)),
        arrival_time=arrival_time,
        senders=senders,
        subject=subject,
        size=int(size_match.group(1)) if size_match else 0,
        flags=tuple(flags_match.group(1).split()) if flags_match else (),
    )
