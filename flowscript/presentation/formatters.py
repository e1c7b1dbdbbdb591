"""
Formatters — lint reports and query results as terminal text

Every query returns plain JSON-ready dicts; this module is the only
place that turns them into human-readable lines. Node ids are shown as
AA-BB short codes, which the CLI accepts back as node references.

Dependency direction: commands -> presentation -> core
"""

from typing import Any, Dict, List

from .codec import IDCodec
from .symbols import DETAIL_LENGTH, SUMMARY_LENGTH, SymbolSet, truncate

_codec = IDCodec()


def _label(ref: Dict[str, Any], length: int = SUMMARY_LENGTH) -> str:
    """[AA-BB] content"""
    return _codec.format_with_code(ref["id"], truncate(ref.get("content", ""), length) or "(block)")


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


# =============================================================================
# Lint
# =============================================================================

def format_lint_results(results: List[Any], symbols: SymbolSet) -> str:
    """
    One line per finding plus an indented suggestion, then a count line.

    Example:
        ✗ notes.fs:3 E001 Tension marker >< missing required axis label
            → Add axis label: ><[dimension of tradeoff]
    """
    if not results:
        return f"No issues found {symbols.check_pass}"

    lines = []
    for result in results:
        marker = symbols.check_fail if result.is_error else symbols.check_warn
        where = f"{result.location} " if result.location else ""
        lines.append(f"{marker} {where}{result.rule} {result.message}")
        if result.suggestion:
            lines.append(f"    {symbols.arrow} {truncate(result.suggestion, DETAIL_LENGTH)}")

    errors = sum(1 for r in results if r.is_error)
    warnings = len(results) - errors
    lines.append("")
    lines.append(f"{_plural(errors, 'error')}, {_plural(warnings, 'warning')}")
    return "\n".join(lines)


# =============================================================================
# why
# =============================================================================

def format_why(result: Dict[str, Any], symbols: SymbolSet) -> str:
    if "causal_chain" not in result:
        # minimal
        chain = result.get("chain", [])
        if not chain:
            return f"Root cause: {result.get('root_cause', '')} (no ancestors)"
        return f" {symbols.arrow} ".join(chain)

    lines = [f"Why: {_label(result['target'])}"]
    chain = result["causal_chain"]
    if not chain:
        lines.append("  No causal ancestors.")
        return "\n".join(lines)

    lines.append(f"  Root cause: {_label(result['root_cause'])}")
    lines.append("")
    for step in chain:
        lines.append(f"  {step['depth']}. {_label(step)}  ({step['relationship_type']})")
    lines.append(f"  {symbols.tree_end} {_label(result['target'])}")

    meta = result["metadata"]
    lines.append("")
    lines.append(f"{_plural(meta['total_ancestors'], 'ancestor')}, chain depth {meta['max_depth']}"
                 + (", multiple causal paths" if meta["has_multiple_paths"] else ""))
    return "\n".join(lines)


# =============================================================================
# what-if
# =============================================================================

def format_what_if(result: Dict[str, Any], symbols: SymbolSet, format: str = "tree") -> str:
    if "impact_summary" in result:
        lines = [result["impact_summary"]]
        if result["benefits"]:
            lines.append("")
            lines.append("Benefits:")
            lines.extend(f"  {symbols.check_pass} {truncate(b)}" for b in result["benefits"])
        if result["risks"]:
            lines.append("")
            lines.append("Risks:")
            lines.extend(f"  {symbols.check_warn} {truncate(r)}" for r in result["risks"])
        if result["key_tradeoff"]:
            lines.append("")
            lines.append(f"Key tradeoff: {result['key_tradeoff']}")
        return "\n".join(lines)

    tree = result["impact_tree"]
    consequences = tree["direct_consequences"] + tree["indirect_consequences"]
    lines = [f"What if: {_label(result['source'])}"]
    if not consequences:
        lines.append("  No downstream consequences.")
        return "\n".join(lines)

    if format == "list":
        for entry in consequences:
            lines.append(f"  {symbols.bullet} {_label(entry)}")
    else:
        for entry in sorted(consequences, key=lambda e: e["depth"]):
            indent = "  " * entry["depth"]
            marker = ""
            if entry.get("has_tension"):
                marker = f"  {symbols.tension}"
            elif entry.get("tension_axis"):
                marker = f"  {symbols.tension} {entry['tension_axis']}"
            lines.append(f"{indent}{symbols.tree_branch} {_label(entry)} ({entry['relationship']}){marker}")

    tensions = result["tensions_in_impact_zone"]
    if tensions:
        lines.append("")
        lines.append("Tensions in impact zone:")
        for t in tensions:
            lines.append(f"  {symbols.tension} [{t['axis']}] {truncate(t['source']['content'], 50)} "
                         f"vs {truncate(t['target']['content'], 50)}")

    meta = result["metadata"]
    lines.append("")
    lines.append(f"{_plural(meta['total_descendants'], 'descendant')}, max depth {meta['max_depth']}")
    return "\n".join(lines)


# =============================================================================
# tensions
# =============================================================================

def _tension_line(detail: Dict[str, Any], symbols: SymbolSet) -> List[str]:
    axis = f" [{detail['axis']}]" if "axis" in detail else ""
    lines = [f"  {_label(detail['source'], 50)} {symbols.tension}{axis} {_label(detail['target'], 50)}"]
    for parent in detail.get("context", []):
        lines.append(f"      {symbols.derives} {_label(parent, 60)}")
    return lines


def format_tensions(result: Dict[str, Any], symbols: SymbolSet) -> str:
    meta = result["metadata"]
    if meta["total_tensions"] == 0:
        return "No tensions found."

    lines = []
    if "tensions_by_axis" in result:
        for axis, details in result["tensions_by_axis"].items():
            lines.append(f"[{axis}] ({len(details)})")
            for detail in details:
                lines.extend(_tension_line(detail, symbols))
    elif "tensions_by_node" in result:
        for details in result["tensions_by_node"].values():
            lines.append(_label(details[0]["source"]))
            for detail in details:
                lines.append(f"  {symbols.tension} [{detail['axis']}] {_label(detail['target'], 60)}")
    else:
        for detail in result["tensions"]:
            lines.extend(_tension_line(detail, symbols))

    lines.append("")
    axes = len(meta["unique_axes"])
    summary = f"{_plural(meta['total_tensions'], 'tension')} across {axes} axi{'s' if axes == 1 else 'es'}"
    if meta["most_common_axis"]:
        summary += f", most common: {meta['most_common_axis']}"
    lines.append(summary)
    return "\n".join(lines)


# =============================================================================
# blocked
# =============================================================================

def format_blocked(result: Dict[str, Any], symbols: SymbolSet, format: str = "detailed") -> str:
    meta = result["metadata"]
    if meta["total_blockers"] == 0:
        return f"{symbols.check_pass} Nothing is blocked."

    lines = []
    for blocker in result["blockers"]:
        state = blocker["blocked_state"]
        days = f"{state['days_blocked']}d" if state["since"] else "?d"
        lines.append(f"{symbols.blocked} {_label(blocker['node'])}  [{days}, impact {blocker['impact_score']}]")
        if format == "summary":
            continue
        lines.append(f"    reason: {truncate(state['reason'], DETAIL_LENGTH)}")
        for cause in blocker.get("transitive_causes", []):
            lines.append(f"    {symbols.derives} {_label(cause, 60)}")
        for effect in blocker.get("transitive_effects", []):
            lines.append(f"    {symbols.causes} {_label(effect, 60)}")

    lines.append("")
    lines.append(
        f"{_plural(meta['total_blockers'], 'blocker')}, {meta['high_priority_count']} high priority, "
        f"average {meta['average_days_blocked']} days"
    )
    oldest = meta["oldest_blocker"]
    if oldest:
        lines.append(f"Oldest: [{_codec.encode(oldest['id'])}] {oldest['days']} days")
    return "\n".join(lines)


# =============================================================================
# alternatives
# =============================================================================

def _tree_lines(root: Dict[str, Any], symbols: SymbolSet, prefix: str, last: bool) -> List[str]:
    lines = []
    stack = [(root, prefix, last)]
    while stack:
        node, prefix, last = stack.pop()
        connector = symbols.tree_end if last else symbols.tree_branch
        marker = f" {symbols.decided}" if node["chosen"] else ""
        lines.append(f"{prefix}{connector} {_label(node, 60)}{marker}")
        child_prefix = prefix + ("   " if last else symbols.tree_pipe + " ")
        for reason in node.get("rejection_reasons", []):
            lines.append(f"{child_prefix}  {symbols.check_fail} {truncate(reason, 60)}")
        children = node["children"]
        for i in reversed(range(len(children))):
            stack.append((children[i], child_prefix, i == len(children) - 1))
    return lines


def format_alternatives(result: Dict[str, Any], symbols: SymbolSet) -> str:
    if result["format"] == "simple":
        lines = [f"{symbols.question} {result['question']}"]
        for option in result["options_considered"]:
            marker = symbols.decided if option == result["chosen"] else " "
            lines.append(f"  {marker} {truncate(option)}")
        if result["chosen"]:
            lines.append("")
            lines.append(f"Chosen: {result['chosen']}")
            if result["reason"]:
                lines.append(f"Reason: {truncate(result['reason'], DETAIL_LENGTH)}")
        else:
            lines.append("")
            lines.append("No decision recorded.")
        return "\n".join(lines)

    lines = [f"{symbols.question} {_label(result['question'])}"]

    if result["format"] == "tree":
        options = result["alternatives"]
        for i, option in enumerate(options):
            lines.extend(_tree_lines(option, symbols, "  ", i == len(options) - 1))
        return "\n".join(lines)

    for option in result["alternatives"]:
        marker = symbols.decided if option["chosen"] else symbols.alternative
        lines.append(f"  {marker} {_label(option)}")
        if option.get("rationale"):
            decided_on = f" ({option['decided_on']})" if option.get("decided_on") else ""
            lines.append(f"      rationale: {truncate(option['rationale'], DETAIL_LENGTH)}{decided_on}")
        for reason in option.get("rejection_reasons", []):
            lines.append(f"      {symbols.check_fail} {truncate(reason, 80)}")
        for consequence in option.get("consequences", []):
            lines.append(f"      {symbols.causes} {_label(consequence, 60)}")
        for tension in option.get("tensions", []):
            lines.append(f"      {symbols.tension} [{tension['axis']}] {truncate(tension['target']['content'], 60)}")

    summary = result["decision_summary"]
    lines.append("")
    if summary["chosen"]:
        lines.append(f"Chosen: {summary['chosen']}")
        if summary["key_factors"]:
            lines.append(f"Key factors: {', '.join(summary['key_factors'])}")
    else:
        lines.append("No decision recorded.")
    if summary["rejected"]:
        lines.append(f"Rejected: {', '.join(truncate(r, 40) for r in summary['rejected'])}")
    return "\n".join(lines)

