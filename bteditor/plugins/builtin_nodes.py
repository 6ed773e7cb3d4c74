# FILE: bteditor/plugins/builtin_nodes.py
"""Built-in BehaviorTree.CPP node types as a catalog plugin.

Provides the palette for the five categories:
- composite: Sequence, Fallback and their reactive/memory variants, Parallel, IfThenElse
- decorator: Inverter, ForceSuccess/Failure, Repeat, RetryUntilSuccessful, Delay, Timeout
- action: AlwaysSuccess, AlwaysFailure, Script, SetBlackboard, Sleep
- condition: ScriptCondition
- subtree: SubTree

Definitions are plain dicts; the catalog validates them into NodeTypeDef.
"""
from typing import Any, Dict, List

from pluggy import HookimplMarker

hookimpl = HookimplMarker("bteditor")


def _prop(name: str, type: str, default: Any, description: str) -> Dict[str, Any]:
    return {"name": name, "type": type, "default": default, "description": description}


def _composite(type: str, description: str, max_children=None, properties=None) -> Dict[str, Any]:
    return {
        "type": type, "name": type, "category": "composite", "builtin": True,
        "description": description, "maxChildren": max_children, "canBeChildless": False,
        "properties": properties or [],
    }


def _decorator(type: str, description: str, properties=None) -> Dict[str, Any]:
    return {
        "type": type, "name": type, "category": "decorator", "builtin": True,
        "description": description, "maxChildren": 1, "canBeChildless": False,
        "properties": properties or [],
    }


def _leaf(type: str, category: str, description: str, properties=None) -> Dict[str, Any]:
    return {
        "type": type, "name": type, "category": category, "builtin": True,
        "description": description, "maxChildren": 0, "canBeChildless": True,
        "properties": properties or [],
    }


@hookimpl
def register_node_types() -> List[Dict[str, Any]]:
    """Register the standard node library."""
    return [
        _composite("Sequence", "Ticks children in order; fails on the first failure."),
        _composite("SequenceWithMemory", "Sequence that resumes from the last running child."),
        _composite("ReactiveSequence", "Sequence that re-evaluates earlier children every tick."),
        _composite("Fallback", "Ticks children in order until one succeeds."),
        _composite("ReactiveFallback", "Fallback that re-evaluates earlier children every tick."),
        _composite("Parallel", "Ticks all children; thresholds decide the result.", properties=[
            _prop("success_count", "number", -1, "Children that must succeed"),
            _prop("failure_count", "number", 1, "Children that may fail"),
        ]),
        _composite("IfThenElse", "Condition, then-branch and optional else-branch.", max_children=3),
        _composite("WhileDoElse", "Reactive condition with do and else branches.", max_children=3),

        _decorator("Inverter", "Swaps SUCCESS and FAILURE of its child."),
        _decorator("ForceSuccess", "Returns SUCCESS whatever the child returns."),
        _decorator("ForceFailure", "Returns FAILURE whatever the child returns."),
        _decorator("KeepRunningUntilFailure", "Ticks the child until it fails."),
        _decorator("RetryUntilSuccessful", "Retries the child up to num_attempts times.", properties=[
            _prop("num_attempts", "number", 1, "Maximum attempts"),
        ]),
        _decorator("Repeat", "Repeats the child num_cycles times.", properties=[
            _prop("num_cycles", "number", 1, "Repetitions"),
        ]),
        _decorator("Delay", "Delays ticking the child.", properties=[
            _prop("delay_msec", "number", 1000, "Delay in milliseconds"),
        ]),
        _decorator("Timeout", "Halts the child after msec milliseconds.", properties=[
            _prop("msec", "number", 1000, "Timeout in milliseconds"),
        ]),

        _leaf("AlwaysSuccess", "action", "Returns SUCCESS."),
        _leaf("AlwaysFailure", "action", "Returns FAILURE."),
        _leaf("Script", "action", "Runs a script expression.", properties=[
            _prop("code", "string", "", "Script code"),
        ]),
        _leaf("SetBlackboard", "action", "Writes a value to a blackboard entry.", properties=[
            _prop("value", "string", "", "Value to write"),
            _prop("output_key", "string", "", "Blackboard key"),
        ]),
        _leaf("Sleep", "action", "Returns RUNNING for msec milliseconds.", properties=[
            _prop("msec", "number", 1000, "Sleep time in milliseconds"),
        ]),

        _leaf("ScriptCondition", "condition", "SUCCESS when the script evaluates to true.", properties=[
            _prop("code", "string", "", "Boolean script expression"),
        ]),

        _leaf("SubTree", "subtree", "Runs another behavior tree by ID.", properties=[
            _prop("ID", "string", "", "ID of the subtree"),
            _prop("_autoremap", "boolean", False, "Remap ports automatically"),
        ]),
    ]
