"""Facts extracted from log entries.

Three kinds of entries are recognized: execution plans logged by
``auto_explain``, completed autovacuum runs and deadlock reports. Each
recognized entry appends one fact to a :class:`Results` sink.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from typing_extensions import Literal

if TYPE_CHECKING:
    from .reader import LogEntry

logger = logging.getLogger(__name__)

PlanFormat = Literal["text", "json", "xml", "yaml"]


class Plan:
    """Execution plan captured by ``auto_explain``."""

    __slots__ = ("database", "user", "format", "at", "query", "plan")

    def __init__(
        self,
        database: str,
        user: str,
        format: PlanFormat,
        at: int,
        query: str = "",
        plan: str = "",
    ) -> None:
        self.database = database
        self.user = user
        self.format = format
        self.at = at
        self.query = query
        self.plan = plan

    def __repr__(self) -> str:
        return "<%s %s %s@%s: %.32s>" % (
            self.__class__.__name__,
            self.format,
            self.user,
            self.database,
            self.query.replace("\n", " "),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Plan):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def as_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in self.__slots__}


class AutoVacuum:
    """Completed autovacuum run."""

    __slots__ = ("at", "table", "elapsed")

    def __init__(self, at: int, table: str, elapsed: float) -> None:
        self.at = at
        self.table = table
        self.elapsed = elapsed

    def __repr__(self) -> str:
        return "<%s %s %ss>" % (self.__class__.__name__, self.table, self.elapsed)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AutoVacuum):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def as_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in self.__slots__}


class Deadlock:
    """Deadlock report, ``detail`` lists the processes involved."""

    __slots__ = ("at", "detail")

    def __init__(self, at: int, detail: str) -> None:
        self.at = at
        self.detail = detail

    def __repr__(self) -> str:
        return "<%s %.32s>" % (self.__class__.__name__, self.detail.strip())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Deadlock):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def as_dict(self) -> Dict[str, Any]:
        return {k: getattr(self, k) for k in self.__slots__}


class Results:
    """Sink accumulating facts of one collection cycle.

    .. attribute:: plans
    .. attribute:: autovacuums
    .. attribute:: deadlocks

    Lists of facts, in log order.
    """

    def __init__(self) -> None:
        self.plans: List[Plan] = []
        self.autovacuums: List[AutoVacuum] = []
        self.deadlocks: List[Deadlock] = []

    def __repr__(self) -> str:
        return "<%s plans=%d autovacuums=%d deadlocks=%d>" % (
            self.__class__.__name__,
            len(self.plans),
            len(self.autovacuums),
            len(self.deadlocks),
        )

    def __len__(self) -> int:
        return len(self.plans) + len(self.autovacuums) + len(self.deadlocks)

    def extend(self, other: "Results") -> None:
        self.plans.extend(other.plans)
        self.autovacuums.extend(other.autovacuums)
        self.deadlocks.extend(other.deadlocks)

    def as_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return dict(
            plans=[p.as_dict() for p in self.plans],
            autovacuums=[a.as_dict() for a in self.autovacuums],
            deadlocks=[d.as_dict() for d in self.deadlocks],
        )


_ae_start_re = re.compile(
    r"^duration: [0-9]+\.[0-9]+ ms  plan:\n[ \t]+"
    r"({[ \t]*\n)?"
    r"(<explain xml.*\n)?"
    r'(Query Text: ".*"\n)?'
    r'(Query Text: [^"].*\n)?'
)
_ae_query_re = re.compile(r"^\s+Query Text: (.*)$")
_ae_plan_re = re.compile(r"cost=\d+.*rows=\d")
_av_start_re = re.compile(
    r"automatic (aggressive )?vacuum (to prevent wraparound )?"
    r'of table "([^"]+)": index'
)
_av_elapsed_re = re.compile(r"elapsed: ([0-9.]+) s")


def _unix(entry: "LogEntry") -> int:
    return int(entry.timestamp.timestamp())


def split_text_plan(text: str) -> Tuple[str, str]:
    # Lines are discarded until a Query Text: line. From there, lines belong
    # to the query until a plan row, then to the plan.
    query: List[str] = []
    plan: List[str] = []
    target: Optional[List[str]] = None
    for line in text.split("\n"):
        match = _ae_query_re.match(line)
        if match:
            query = [match.group(1)]
            target = query
            continue
        elif _ae_plan_re.search(line):
            target = plan
        if target is not None:
            target.append(line)
    return "\n".join(query), "".join(line + "\n" for line in plan)


def split_json_plan(text: str) -> Tuple[str, str]:
    # The plan starts on the line following "plan:".
    parts = text.split("\n", 1)
    if len(parts) != 2:
        return "", ""
    try:
        obj = json.loads(parts[1])
    except ValueError:
        logger.debug("Malformed JSON plan: %.32s", parts[1])
        return "", ""
    if not isinstance(obj, dict):
        return "", ""
    query = obj.pop("Query Text", "")
    if not isinstance(query, str):
        query = ""
    return query, json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def match_auto_explain(entry: "LogEntry") -> Optional[re.Match[str]]:
    return _ae_start_re.match(entry.line)


def extract_plan(entry: "LogEntry", match: re.Match[str], results: Results) -> None:
    plan = Plan(entry.database, entry.user, "text", _unix(entry))
    json_, xml, yaml, text = match.groups()
    if json_:
        plan.format = "json"
        plan.query, plan.plan = split_json_plan(entry.line)
    elif xml:
        plan.format = "xml"
        logger.warning("xml format auto_explain output not supported yet")
    elif yaml:
        plan.format = "yaml"
        logger.warning("yaml format auto_explain output not supported yet")
    elif text:
        plan.query, plan.plan = split_text_plan(entry.line)
    results.plans.append(plan)


def match_autovacuum(entry: "LogEntry") -> Optional[re.Match[str]]:
    return _av_start_re.search(entry.line)


def extract_autovacuum(
    entry: "LogEntry", match: re.Match[str], results: Results
) -> None:
    elapsed_match = _av_elapsed_re.search(entry.text)
    if not elapsed_match:
        return
    try:
        elapsed = float(elapsed_match.group(1))
    except ValueError:
        return
    results.autovacuums.append(AutoVacuum(_unix(entry), match.group(3), elapsed))


def match_deadlock(entry: "LogEntry") -> bool:
    return entry.line == "deadlock detected"


def extract_deadlock(entry: "LogEntry", match: bool, results: Results) -> None:
    detail = entry.get("DETAIL").replace("\t", "") + "\n"
    results.deadlocks.append(Deadlock(_unix(entry), detail))


# Ordered (predicate, extractor) pairs. First matching predicate wins.
CLASSIFIERS: List[Tuple[Callable[["LogEntry"], Any], Callable[..., None]]] = [
    (match_auto_explain, extract_plan),
    (match_autovacuum, extract_autovacuum),
    (match_deadlock, extract_deadlock),
]


def classify(entry: "LogEntry", results: Results) -> bool:
    """Append at most one fact from ``entry`` to ``results``.

    :returns: ``True`` if ``entry`` matched a known kind of entry, even if no
        fact could be extracted from it.
    """
    for predicate, extract in CLASSIFIERS:
        match = predicate(entry)
        if match:
            extract(entry, match, results)
            return True
    return False
