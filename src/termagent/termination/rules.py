"""Text-classification rule table for the termination detector.

When the model answers without calling a tool, its text is matched
against three pattern families, in this order:

1. incomplete intent ("let me check...", "正在执行") -> keep going
2. a tool mentioned by name without being called -> keep going
3. summary / closing phrasing ("all done", "in summary") -> stop

The families are data (:data:`DEFAULT_TEXT_RULES`) so they can be tested
and extended without touching the detector's control flow. English and
Chinese phrasing are both covered.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from termagent.models.termination import TerminationReason

_I = re.IGNORECASE


class PatternClassifier:
    """Matches text against an ordered list of regular expressions."""

    def __init__(self, name: str, patterns: list[re.Pattern[str]]) -> None:
        self.name = name
        self.patterns = tuple(patterns)

    def match(self, text: str) -> re.Pattern[str] | None:
        """Return the first matching pattern, or None.

        Text shorter than two characters never matches.
        """
        if not text or len(text) < 2:
            return None
        for pattern in self.patterns:
            if pattern.search(text):
                return pattern
        return None

    def __call__(self, text: str) -> bool:
        return self.match(text) is not None

    def __repr__(self) -> str:
        return f"PatternClassifier({self.name!r}, {len(self.patterns)} patterns)"


@dataclass(frozen=True)
class TextRule:
    """One row of the text rule table.

    Attributes:
        name: Rule name used in logs.
        classifier: Predicate over the model's round text.
        should_terminate: Verdict when the classifier matches.
        reason: Termination reason reported with the verdict.
        message: Optional human-readable explanation.
    """

    name: str
    classifier: PatternClassifier
    should_terminate: bool
    reason: TerminationReason
    message: str | None = None


# ---------------------------------------------------------------------------
# Incomplete intent
# ---------------------------------------------------------------------------

_INCOMPLETE_ZH = [
    r"现在.{0,6}(为您|帮您|给您|查看|执行|检查)",
    r"继续.{0,4}(为您|帮您|查看|执行|检查|获取)",
    r"(让我|我来|我将|我会).{0,6}(查看|执行|检查|获取|点击|打开|选择)",
    r"(正在|开始|准备).{0,4}(执行|查看|检查|获取)",
    r"(接下来|然后|之后|随后).{0,4}(将|会|要)",
    r"(马上|立即|即将|稍后|待会).{0,4}(为您|执行|查看)",
    r"首先.{0,8}(然后|接着|之后)",
    r"(第一步|下一步|接下来)",
    r"(帮您|为您|给您).{0,4}(查看|执行|检查|获取|操作)",
    r"(我需要|需要).{0,4}(查看|执行|检查|获取)",
    r"(先|首先|第一).{0,4}(看看|检查|执行)",
    r"下面.{0,4}(将|会|要|是)",
    r"(等一下|稍等|请稍候)",
    # tool and browser operations
    r"(让我|我来|我将|我会).{0,30}(使用|调用|执行|查询|访问|点击|打开|选择|滚动|输入)",
    r"使用.{0,20}(工具|MCP|浏览器).*?(查询|访问|获取)",
    r"(?i:MCP).{0,15}(工具|浏览器|服务|(?i:server))",
    r"访问.{0,15}(官网|网站|URL|链接|网址)",
    r"(查询|获取|搜索).{0,10}(信息|数据|结果|推荐)",
    r"浏览器.{0,10}(工具|访问|打开)",
    r"(下一步|接下来|然后).{0,15}(使用|调用|执行|查询)",
    r"现在.{0,15}(重新|继续|使用|调用|执行|让我|查询|获取|搜索)",
    # retry / again
    r"重新.{0,10}(查询|搜索|获取|执行|尝试|加载|刷新)",
    r"继续.{0,10}(查询|搜索|获取|执行|尝试)",
    r"再次.{0,10}(查询|搜索|获取|执行|尝试)",
    r"再.{0,6}(查一下|看一下|执行|获取)",
    r"还有.{0,10}(需要|要|可以)",
    r"另外.{0,10}(需要|要|可以)",
    r"让我再",
    r"我再",
    r"再试",
    r"尝试.{0,10}(查询|搜索|执行|获取)",
    r"看看能否",
    r"检查一下",
    r"确认.{0,10}(是否|有没有)",
    r"试.{0,6}(着|一下|看)",
    r"查.{0,6}(看|一下|询)",
    r"查一下",
    r"获取.{0,10}(更多|其他|最新)",
    r"查看.{0,10}(更多|其他|详情)",
    r"然后.{0,15}(查询|搜索|获取|执行)",
    r"接下来.{0,15}(查询|搜索|获取|执行)",
    r"现在重新",
    r"继续执行",
    r"再次执行",
    r"重新加载",
    r"刷新",
    # acknowledgement followed by action
    r"好的.?([，,]|我|来)",
    r"(好的|好的嘞|好的呀|好嘞|好啊)[，, ]?(我来|我帮|我给)",
    r"(没问题|没问题呀)[，, ]?(我来|我帮|我给)",
    r"好的[，, ]?(我|让我)[帮给]",
    r"(那我们|我们)[，, ]?(先|来)",
    r"(好的|好)[，, ]?(那|就先)",
    r"(行|行吧|好的)[，, ]?(我|让我)",
    r"(嗯|嗯嗯)[，, ]?(我|让我|我来)",
    r"(?i:ok|okay)[，, ]?(我|让我)",
    r"(明白|懂了)[，, ]?(我|让我|我来)",
    r"收到[，, ]?(我|让我|我来)",
]

_INCOMPLETE_EN = [
    r"\b(let me|i('ll| will| am going to))\b",
    r"\b(now i|first i|next i)\b",
    r"\b(going to|about to|starting to|ready to|prepared to)\b",
    r"\b(will now|shall now|let's)\b",
    r"\b(proceed(ing)? to|continu(e|ing) to)\b",
    r"\b(executing|running|checking|fetching)\b",
    r"\b(step \d|first,?|next,?|then,?)\b",
    r"\b(wait(ing)?|hold on|stand by|just a moment)\b",
    r"\b(i need to|i have to)\b",
    r"\b(looking (at|into|for))\b",
    # browser-style actions
    r"\b(click(ing)?|open(ing)?|select(ing)?)\b",
    r"\b(scroll(ing)?|type|typing|input(ting)?)\b",
    r"\b(navigat(e|ing)|brows(e|ing))\b",
    r"\b(submit(ting)?|enter(ing)?)\b",
    # retry / again
    r"\bagain\b",
    r"\b(re)?try(ing)?\b",
    r"\b(re)?search(ing)?\b",
    r"\b(re)?visit(ing)?\b",
    r"\b(re)?fresh(ing)?\b",
    r"\b(re)?load(ing)?\b",
    r"\b(another|one more|once more)\b",
    r"\b(second|next) (try|time)\b",
    # intent to act
    r"\blet me try\b",
    r"\bi('ll| will) try\b",
    r"\bi('m| am) going to try\b",
    r"\bneed to (try|check|search|find)\b",
    r"\bhave to (try|check|search|find)\b",
    r"\bshould (try|check|search|find)\b",
    r"\bmust (try|check|search|find)\b",
    r"\btry to (find|get|check|search)\b",
    r"\battempt(ing)? to\b",
    r"\bwork on\b",
    r"\bhandle this\b",
    r"\bdeal with\b",
    r"\btake care of\b",
    r"\bprocess(ing)?\b",
    r"\bmanag(e|ing)?\b",
    r"\bexecut(e|ion|ing)\b",
    r"\bproceed\b",
    r"\bcontinu(e|ing)\b",
    r"\bfollow up\b",
    r"\blook into\b",
    r"\binvestigat(e|ing)?\b",
    r"\bexplor(e|ing)?\b",
    r"\bcheck (on|for|into)\b",
    r"\bverify\b",
    r"\bvalidat(e|ing)?\b",
    r"\bconfirm(ing)?\b",
    r"\bfetch(ing)?\b",
    r"\bretriev(e|ing|al)?\b",
    r"\bquer(y|ies|ing)\b",
    r"\brequest(ing)?\b",
    r"\bobtain(ing)?\b",
    r"\bacquir(e|ing)?\b",
    r"\bconsult(ing)?\b",
    r"\brefer(ring)? to\b",
    r"\bexamin(e|ing)?\b",
    r"\binspect(ing)?\b",
    r"\breview(ing)?\b",
    r"\bmonitor(ing)?\b",
    r"\btrack(ing)?\b",
    r"\bwatch(ing)?\b",
    r"\bwait(ing)? for\b",
    r"\bon it\b",
    r"\bto do\b",
]

# ---------------------------------------------------------------------------
# Tool mentioned without a call
# ---------------------------------------------------------------------------

_MENTIONS_TOOL = [
    r"(?i:mcp_\w+)",
    r"MCP.{0,10}(工具|浏览器|服务)",
    r"浏览器.{0,5}工具",
    r"使用.{0,10}工具.{0,10}(访问|查询|获取)",
    r"(?i:write_to_terminal)",
    r"(?i:read_terminal_output)",
    r"(?i:focus_terminal)",
    r"(?i:get_terminal_list)",
    r"(?i:run_command)",
]

# ---------------------------------------------------------------------------
# Summary / closing
# ---------------------------------------------------------------------------

_SUMMARY_ZH = [
    r"(已经|已|均已).{0,4}(完成|结束|执行完)",
    r"(总结|汇总|综上|以上是|如上)",
    r"任务.{0,4}(完成|结束)",
    r"操作.{0,4}(完成|成功)",
    r"(至此|到此|至今|目前).{0,4}(完成|结束)",
    r"(全部|所有|均).{0,4}(完成|执行完|结束)",
    r"以上.{0,4}(就是|便是|为)",
    r"这.{0,4}(就是|便是).*结果",
    r"本次.{0,4}(任务|操作).{0,4}(完成|结束)",
    r"(以上就是|便是).{0,10}(结果|总结)",
    r"(结果|答案|信息).{0,4}(如下|在此|在这里)",
    r"请.{0,4}(查收|查看|参考)",
]

_SUMMARY_EN = [
    r"\b(completed?|finished|done|all set)\b",
    r"\b(in summary|to summarize|here('s| is) (the|a) summary)\b",
    r"\b(task (is )?completed?|successfully (completed?|executed?))\b",
    r"\b(that's (all|it)|we('re| are) done)\b",
    r"\b(above (is|are)|here (is|are) the result)\b",
    r"\bwrap up\b",
    r"\bwind up\b",
    r"\bfinish up\b",
    r"\bconclud(e|ing)?\b",
    r"\bfinaliz(e|ing)?\b",
    r"\bwrap things up\b",
    r"\bterminat(e|ing)?\b",
    r"\bend (it|this|now)\b",
    r"\bstop (it|here|now)\b",
    r"\bhalt(ing)?\b",
    r"\bclose (this|it|up)\b",
    r"\bhere('s| is) (the|your) (result|answer|information)\b",
    r"\bplease (see|check|review)\b",
    r"\bfor your (reference|review)\b",
    r"\b(all done|that's it|that('s| is) (all|it))\b",
    r"\bjob done\b",
    r"\bmission complete\b",
    r"\bexecution complete\b",
    r"\bprocess (complete|finished)\b",
    r"\boperation (complete|finished|done)\b",
    r"\b(request )?complete\b",
    r"\bwe('re| are) (all )?set\b",
    r"\beverything (is )?(done|complete|set)\b",
    r"\byou('re| are) (all )?set\b",
    r"\bhere('s| is) everything\b",
    r"\bthat should be (all|it)\b",
    r"\bthat should do (it|the trick)\b",
    r"\blet me know if you need anything else\b",
    r"\bfeel free to ask\b",
    r"\bhave a great day\b",
    r"\bhappy (coding|terminal|computing)\b",
]


def _compile(patterns: list[str], flags: int = 0) -> list[re.Pattern[str]]:
    return [re.compile(p, flags) for p in patterns]


INCOMPLETE_INTENT = PatternClassifier(
    "incomplete_intent", _compile(_INCOMPLETE_ZH) + _compile(_INCOMPLETE_EN, _I)
)
MENTIONS_TOOL = PatternClassifier("mentions_tool", _compile(_MENTIONS_TOOL))
SUMMARIZING = PatternClassifier(
    "summarizing", _compile(_SUMMARY_ZH) + _compile(_SUMMARY_EN, _I)
)

DEFAULT_TEXT_RULES: tuple[TextRule, ...] = (
    TextRule(
        name="incomplete_intent",
        classifier=INCOMPLETE_INTENT,
        should_terminate=False,
        reason=TerminationReason.NO_TOOLS,
        message="Model announced further work without calling a tool",
    ),
    TextRule(
        name="mentions_tool",
        classifier=MENTIONS_TOOL,
        should_terminate=False,
        reason=TerminationReason.MENTIONED_TOOL,
        message="Model mentioned a tool without calling it",
    ),
    TextRule(
        name="summarizing",
        classifier=SUMMARIZING,
        should_terminate=True,
        reason=TerminationReason.SUMMARIZING,
        message="Model is summarizing; task considered complete",
    ),
)
