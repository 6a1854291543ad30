"""HTML 解析工具."""

import re

from bs4 import BeautifulSoup

# 解析前的输入长度上限
MAX_INPUT_LENGTH = 10_000


def html_to_text(html: str, max_length: int | None = None) -> str:
    """
    将 HTML 转换为纯文本.

    Args:
        html: HTML 内容
        max_length: 输出最大长度，None 表示不限制

    Returns:
        提取的纯文本内容
    """
    if not html:
        return ""

    if len(html) > MAX_INPUT_LENGTH:
        html = html[:MAX_INPUT_LENGTH]

    # 段落和换行转成换行符
    html = re.sub(r"</p\s*>", "\n\n", html, flags=re.IGNORECASE)
    html = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)

    soup = BeautifulSoup(html, "lxml")

    # 移除 script 和 style 标签
    for element in soup(["script", "style"]):
        element.decompose()

    text = soup.get_text()

    # 清理多余空白
    text = re.sub(r"[ \t\xa0]{2,}", " ", text)
    lines = [line.strip() for line in text.split("\n")]
    text = "\n".join(lines)

    # 合并连续空行
    text = re.sub(r"\n{3,}", "\n\n", text).strip()

    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    return text


def cap_html(html: str | None, max_length: int) -> str | None:
    """截断 HTML 正文，空内容返回 None."""
    if not html:
        return None
    return html[:max_length] if len(html) > max_length else html
