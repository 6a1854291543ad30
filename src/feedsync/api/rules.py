"""过滤规则 API."""

from fastapi import APIRouter, Depends, HTTPException

from feedsync.api.deps import get_reader
from feedsync.core.filters import UnknownRuleError
from feedsync.core.reader import FeedReader
from feedsync.models.rule import FilterRule

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("")
async def list_rules(reader: FeedReader = Depends(get_reader)) -> list[FilterRule]:
    """按评估顺序返回全部规则."""
    return reader.rules


@router.post("", status_code=201)
async def create_rule(rule: FilterRule, reader: FeedReader = Depends(get_reader)) -> FilterRule:
    """新建规则（追加到末尾）."""
    if any(r.id == rule.id for r in reader.rules):
        raise HTTPException(status_code=409, detail="规则 ID 已存在")
    return reader.add_rule(rule)


@router.put("/{rule_id}")
async def update_rule(
    rule_id: str,
    rule: FilterRule,
    reader: FeedReader = Depends(get_reader),
) -> FilterRule:
    """更新规则."""
    rule = rule.model_copy(update={"id": rule_id})
    try:
        return reader.update_rule(rule)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail="规则不存在") from e


@router.delete("/{rule_id}")
async def delete_rule(rule_id: str, reader: FeedReader = Depends(get_reader)) -> dict:
    """删除规则."""
    try:
        reader.remove_rule(rule_id)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail="规则不存在") from e
    return {"success": True}


@router.post("/{rule_id}/toggle")
async def toggle_rule(rule_id: str, reader: FeedReader = Depends(get_reader)) -> FilterRule:
    """启用或停用规则."""
    try:
        return reader.toggle_rule(rule_id)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail="规则不存在") from e


@router.post("/{rule_id}/move")
async def move_rule(
    rule_id: str,
    index: int,
    reader: FeedReader = Depends(get_reader),
) -> list[FilterRule]:
    """调整规则顺序."""
    try:
        reader.move_rule(rule_id, index)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail="规则不存在") from e
    return reader.rules
