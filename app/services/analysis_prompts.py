"""Prompt builders for the LLM-backed analysis scopes.

Only text advice comes from the model; rankings, alerts and rates always
come from the rule engine.
"""

from app.services.rate_service import ItemFailRate

_SYSTEM_PROMPTS = {
    "zh": (
        "你是一个小学常规管理数据分析师。请根据提供的数据进行分析，给出专业、具体、可操作的建议。\n"
        "要求：\n"
        "1. 必须返回严格的 JSON 格式\n"
        "2. 所有文字使用中文\n"
        "3. 分析要基于数据，不要编造不存在的数据\n"
        "4. 建议要具体可操作，避免空泛\n"
        "5. 控制每项文字在50字以内"
    ),
    "en": (
        "You are a primary school routine management data analyst. Analyze the provided data "
        "and give professional, specific, actionable suggestions.\n"
        "Requirements:\n"
        "1. Must return strict JSON format\n"
        "2. All text must be in English\n"
        "3. Analysis must be based on data, do not fabricate non-existent data\n"
        "4. Suggestions should be specific and actionable, avoid vagueness\n"
        "5. Keep each text item within 50 words"
    ),
}


def system_prompt(locale: str) -> str:
    return _SYSTEM_PROMPTS.get(locale, _SYSTEM_PROMPTS["zh"])


def _high_fail_lines(high_fail: list[ItemFailRate], locale: str) -> str:
    if not high_fail:
        return "None" if locale == "en" else "暂无"
    if locale == "en":
        return "\n".join(f"- {s.code or ''} {s.title}: fail rate {s.fail_rate}%" for s in high_fail)
    return "\n".join(f"- {s.code or '临增'} {s.title}：不达标率 {s.fail_rate}%" for s in high_fail)


def build_duty_prompt(
    planned_items: list[str],
    high_fail: list[ItemFailRate],
    week_rate: int,
    locale: str,
) -> str:
    """Inspection focus points and tips for today's duty teacher."""
    if locale == "en":
        planned = "\n".join(planned_items) if planned_items else "No plan today"
        return (
            "## Task\n"
            "Generate today's inspection suggestions and practical tips for the duty teacher.\n\n"
            f"## Today's Planned Check Items\n{planned}\n\n"
            f"## Recent High-Failure Items\n{_high_fail_lines(high_fail, locale)}\n\n"
            f"## Trend\n- This week's pass rate: {week_rate}%\n\n"
            "## Output JSON format\n"
            "{\n"
            '  "focus_points": [{"title": "Focus item", "reason": "Why (within 30 words)"}],\n'
            '  "tips": ["Inspection tip 1 (within 30 words)", "Inspection tip 2"],\n'
            '  "recent_issues": ["Recent frequent issue 1 (within 30 words)"]\n'
            "}"
        )

    planned = "\n".join(planned_items) if planned_items else "暂无今日计划"
    return (
        "## 任务\n"
        "为值日教师生成今日检查建议和实用提示。\n\n"
        f"## 今日计划检查项\n{planned}\n\n"
        f"## 近期高频不达标项\n{_high_fail_lines(high_fail, locale)}\n\n"
        f"## 趋势\n- 本周达标率: {week_rate}%\n\n"
        "## 输出 JSON 格式\n"
        "{\n"
        '  "focus_points": [{"title": "重点关注项", "reason": "为什么关注（30字内）"}],\n'
        '  "tips": ["检查技巧提示1（30字内）", "检查技巧提示2"],\n'
        '  "recent_issues": ["近期高频问题描述1（30字内）"]\n'
        "}"
    )


def build_class_summary_prompt(
    class_name: str,
    pass_rate: int,
    latest_grade: str | None,
    school_week_rate: int,
    failed_items: list[dict],
    locale: str,
) -> str:
    """Weekly work summary and advice for one class teacher."""
    if locale == "en":
        grade = latest_grade or "Unrated"
        fails = (
            "\n".join(f"- {i['title']}: fail rate {i['fail_rate']}%" for i in failed_items)
            or "No significant non-compliant items"
        )
        return (
            "## Task\n"
            f'Generate a weekly class work summary and improvement suggestions for "{class_name}" '
            "for the class teacher's reference.\n\n"
            "## Class Data\n"
            f"- Class name: {class_name}\n"
            f"- 30-day pass rate: {pass_rate}%\n"
            f"- Latest weekly grade: {grade}\n"
            f"- School-wide pass rate this week: {school_week_rate}%\n\n"
            f"## Non-compliant Items\n{fails}\n\n"
            "## Output JSON format\n"
            "{\n"
            '  "class_summary": "Class weekly performance summary (within 80 words)",\n'
            '  "class_advice": ["Improvement suggestion 1 (within 50 words)", "Improvement suggestion 2"]\n'
            "}"
        )

    grade = latest_grade or "未评"
    fails = (
        "\n".join(f"- {i['title']}：不达标率 {i['fail_rate']}%" for i in failed_items)
        or "无明显不达标项目"
    )
    return (
        "## 任务\n"
        f'为"{class_name}"生成一段班级周工作小结和改进建议，用于班主任参考。\n\n'
        "## 班级数据\n"
        f"- 班级名称: {class_name}\n"
        f"- 近30天达标率: {pass_rate}%\n"
        f"- 最新周评等级: {grade}\n"
        f"- 本周全校达标率: {school_week_rate}%\n\n"
        f"## 该班不达标项目\n{fails}\n\n"
        "## 输出 JSON 格式\n"
        "{\n"
        '  "class_summary": "班级本周表现总结（80字内，包含达标率描述和整体评价）",\n'
        '  "class_advice": ["改进建议1（50字内）", "改进建议2（50字内）"]\n'
        "}"
    )
