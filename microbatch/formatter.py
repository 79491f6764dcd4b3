"""
microbatch help/list rendering.

Pure functions returning rich Text; printing is the engine's job.

Palette keys (override any of them with a __styles__ mapping in __main__)
- command-name, qualified-name, command-description
- section-label, parameter-name, parameter-alias, parameter-type
- required, default, choice, parameter-description, missing
"""
from collections import defaultdict

from rich.text import Text


def _palette(colorful):
    styles = defaultdict(str, {
        "command-name": "bold #00E6FF",
        "qualified-name": "#36C5F0",
        "command-description": "italic #A3A3A3",
        "section-label": "bold #FFFFFF",
        "parameter-name": "bold #FF4D94",
        "parameter-alias": "#FF4D94",
        "parameter-type": "#9CE19C",
        "required": "bold #FFB020",
        "default": "#737373",
        "choice": "#B794F6",
        "parameter-description": "#9CA3AF",
        "missing": "bold #FF4D4D",
    } | getattr(__import__("__main__"), "__styles__", {}))
    return styles if colorful else defaultdict(str)


def render_list(catalog, /, *, colorful=False):
    """
    One "TypeName.MethodName" line per method, in discovery order.

    Alias sets stacked on one method share the line. An empty catalog renders
    an empty Text.
    """
    styles = _palette(colorful)
    qualnames = dict.fromkeys(descriptor.qualname for descriptor in catalog)
    return Text("\n").join(Text(qualname, styles["qualified-name"]) for qualname in qualnames)


def _usage(descriptor, styles, /):
    line = Text(descriptor.name, styles["command-name"])
    if descriptor.aliases[1:]:
        line.append(" (")
        line.append(", ".join(descriptor.aliases[1:]), styles["command-name"])
        line.append(")")
    if descriptor.aliases:
        line.append("  " + descriptor.qualname, styles["qualified-name"])
    for parameter in descriptor.bindable:
        flag = "-%s <%s>" % (parameter.name, parameter.typename)
        line.append(" ")
        line.append(flag if parameter.required else "[%s]" % flag)
    return line


def _parameter(parameter, styles, /):
    line = Text("  ")
    line.append(parameter.flags[0], styles["parameter-name"])
    if aliases := parameter.flags[1:]:
        line.append(", ")
        line.append(", ".join(aliases), styles["parameter-alias"])
    if parameter.index is not None:
        line.append(" (#%d)" % parameter.index, styles["parameter-alias"])
    line.append(": ")
    line.append(parameter.typename, styles["parameter-type"])
    line.append(", ")
    if parameter.required:
        line.append("required", styles["required"])
    else:
        line.append("default: %r" % (parameter.default,), styles["default"])
    if parameter.choices:
        line.append(", one of ")
        line.append(" | ".join(map(str, parameter.choices)), styles["choice"])
    if parameter.descr:
        line.append("  ")
        line.append(str(parameter.descr), styles["parameter-description"])
    return line


def render_help(descriptors, /, *, colorful=False):
    """
    Usage, description and parameters of each descriptor, blank-line separated.

    Parameters are listed in declaration order with their name (and short
    names), type, and "required" or "default: <value>". The cancellation
    parameter is never shown.
    """
    styles = _palette(colorful)
    blocks = []
    for descriptor in descriptors:
        lines = [_usage(descriptor, styles)]
        if descriptor.descr:
            lines.append(Text("  " + descriptor.descr.splitlines()[0], styles["command-description"]))
        if bindable := descriptor.bindable:
            lines.append(Text("parameters:", styles["section-label"]))
            lines.extend(_parameter(parameter, styles) for parameter in bindable)
        blocks.append(Text("\n").join(lines))
    return Text("\n\n").join(blocks)


def render_missing(name, /, *, colorful=False):
    """
    The `help <name>` answer when nothing matches.
    """
    styles = _palette(colorful)
    return Text.assemble(
        ("Method not found: %s" % name, styles["missing"]),
        ', please check the "list" command.',
    )


__all__ = (
    "render_list",
    "render_help",
    "render_missing",
)
