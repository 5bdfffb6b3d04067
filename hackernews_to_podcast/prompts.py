from __future__ import annotations

import logging
from typing import Dict, Optional


logger = logging.getLogger(__name__)


ROLE_STORY = "story"
ROLE_PODCAST = "podcast"
ROLE_BLOG = "blog"
ROLE_INTRO = "intro"
ROLES = (ROLE_STORY, ROLE_PODCAST, ROLE_BLOG, ROLE_INTRO)


STORY_PROMPT = (
    "你是一名 Hacker News 编辑，负责为中文科技播客准备素材。\n"
    "输入包含 <title>、<article>（原文，可能缺失）和 <comments>（讨论区，可能缺失）。\n"
    "要求：\n"
    "- 用中文写一段 200 到 400 字的摘要，先说明文章讲了什么，再概括讨论区的主要观点和分歧。\n"
    "- 保留关键数字、产品名和人名，专有名词保持英文原文。\n"
    "- 不要编造原文和评论中没有的信息；原文缺失时只根据标题和评论概括。\n"
    "- 只输出纯文本，不要使用 Markdown。"
)

PODCAST_PROMPT = (
    "你是一档中文科技播客《Hacker News 每日播客》的编剧，节目由一男一女两位主持人对话进行。\n"
    "输入是当天若干条 Hacker News 热门内容的摘要，以 --- 分隔。\n"
    "要求：\n"
    "- 写成两位主持人的对话稿，每一行是一位主持人的一句或一段话。\n"
    "- 每行必须以说话人标签开头：男主持人用 `男:`，女主持人用 `女:`，标签后直接接台词。\n"
    "- 不要输出空的台词行、旁白、音效说明、标题或 Markdown 符号。\n"
    "- 开场简短问候并预告今天的话题，按输入顺序逐条讨论，最后简短收尾。\n"
    "- 口语化、自然，适合直接朗读；数字和英文缩写写成便于朗读的形式。"
)

BLOG_PROMPT = (
    "你是一名科技博客作者。输入是当天若干条 Hacker News 热门内容的摘要，以 --- 分隔。\n"
    "请写一篇中文博客文章：\n"
    "- 使用 Markdown，标题为二级标题，每条内容一个小节。\n"
    "- 每节先概述内容，再总结社区讨论的要点。\n"
    "- 不要编造输入中没有的信息。"
)

INTRO_PROMPT = (
    "你是播客编辑。输入是一期中文科技播客的完整对话稿。\n"
    "请写一段不超过 100 字的节目简介，概括本期讨论的主要话题。\n"
    "只输出简介正文，不要标题、不要说话人标签。"
)

DEFAULT_PROMPTS: Dict[str, str] = {
    ROLE_STORY: STORY_PROMPT,
    ROLE_PODCAST: PODCAST_PROMPT,
    ROLE_BLOG: BLOG_PROMPT,
    ROLE_INTRO: INTRO_PROMPT,
}


def resolve_prompt(role: str, prompt_files: Optional[Dict[str, str]] = None) -> str:
    """System prompt for `role`; an external file takes precedence if configured."""
    if role not in DEFAULT_PROMPTS:
        raise ValueError(f"unknown generation role: {role}")
    path = (prompt_files or {}).get(role)
    if path:
        try:
            with open(path, "r", encoding="utf-8") as pf:
                content = pf.read().strip()
            if content:
                return content
        except OSError as e:
            logger.warning("Prompt file unreadable; using built-in prompt", extra={"role": role, "path": path, "error": str(e)})
    return DEFAULT_PROMPTS[role]
