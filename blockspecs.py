from __future__ import annotations

from dataclasses import dataclass, field

from model import Color

BLOCK_KINDS = ("command", "reporter", "predicate", "hat")


@dataclass(frozen=True)
class BlockInfo:
    kind: str
    category: str
    spec: str
    defaults: tuple = field(default_factory=tuple)


def _info(kind: str, category: str, spec: str, *defaults: object) -> BlockInfo:
    return BlockInfo(kind=kind, category=category, spec=spec, defaults=tuple(defaults))


BLOCK_SPECS: dict[str, BlockInfo] = {
    # motion
    "forward": _info("command", "motion", "move %n steps"),
    "turn": _info("command", "motion", "turn %clockwise %n degrees"),
    "turnLeft": _info("command", "motion", "turn %counterclockwise %n degrees"),
    "setHeading": _info("command", "motion", "point in direction %dir"),
    "gotoXY": _info("command", "motion", "go to x: %n y: %n"),
    "doGlide": _info("command", "motion", "glide %n secs to x: %n y: %n"),
    "changeXPosition": _info("command", "motion", "change x by %n"),
    "setXPosition": _info("command", "motion", "set x to %n"),
    "changeYPosition": _info("command", "motion", "change y by %n"),
    "setYPosition": _info("command", "motion", "set y to %n"),
    "bounceOffEdge": _info("command", "motion", "if on edge, bounce"),
    "xPosition": _info("reporter", "motion", "x position"),
    "yPosition": _info("reporter", "motion", "y position"),
    "direction": _info("reporter", "motion", "direction"),
    # looks
    "doSwitchToCostume": _info("command", "looks", "switch to costume %cst"),
    "doWearNextCostume": _info("command", "looks", "next costume"),
    "getCostumeIdx": _info("reporter", "looks", "costume #"),
    "doSayFor": _info("command", "looks", "say %s for %n secs"),
    "bubble": _info("command", "looks", "say %s"),
    "doThinkFor": _info("command", "looks", "think %s for %n secs"),
    "doThink": _info("command", "looks", "think %s"),
    "changeEffect": _info("command", "looks", "change %eff effect by %n"),
    "setEffect": _info("command", "looks", "set %eff effect to %n"),
    "clearEffects": _info("command", "looks", "clear graphic effects"),
    "changeScale": _info("command", "looks", "change size by %n"),
    "setScale": _info("command", "looks", "set size to %n %"),
    "getScale": _info("reporter", "looks", "size"),
    "show": _info("command", "looks", "show"),
    "hide": _info("command", "looks", "hide"),
    "comeToFront": _info("command", "looks", "go to front"),
    "goBack": _info("command", "looks", "go back %n layers"),
    "alert": _info("command", "looks", "alert %mult%s"),
    "log": _info("command", "looks", "multi log %mult%s"),
    # sound
    "playSound": _info("command", "sound", "play sound %snd"),
    "doPlaySoundUntilDone": _info("command", "sound", "play sound %snd until done"),
    "doStopAllSounds": _info("command", "sound", "stop all sounds"),
    # pen
    "clear": _info("command", "pen", "clear"),
    "down": _info("command", "pen", "pen down"),
    "up": _info("command", "pen", "pen up"),
    "setColor": _info("command", "pen", "set pen color to %clr"),
    "changeHue": _info("command", "pen", "change pen color by %n"),
    "setHue": _info("command", "pen", "set pen color to %n"),
    "changeBrightness": _info("command", "pen", "change pen shade by %n"),
    "setBrightness": _info("command", "pen", "set pen shade to %n"),
    "changeSize": _info("command", "pen", "change pen size by %n"),
    "setSize": _info("command", "pen", "set pen size to %n"),
    "doStamp": _info("command", "pen", "stamp"),
    # control
    "receiveGo": _info("hat", "control", "when %greenflag clicked"),
    "receiveKey": _info("hat", "control", "when %key key pressed"),
    "receiveClick": _info("hat", "control", "when I am clicked"),
    "receiveMessage": _info("hat", "control", "when I receive %msg"),
    "doBroadcast": _info("command", "control", "broadcast %msg"),
    "doBroadcastAndWait": _info("command", "control", "broadcast %msg and wait"),
    "doWait": _info("command", "control", "wait %n secs"),
    "doWaitUntil": _info("command", "control", "wait until %b"),
    "doForever": _info("command", "control", "forever %c"),
    "doRepeat": _info("command", "control", "repeat %n %c"),
    "doUntil": _info("command", "control", "repeat until %b %c"),
    "doIf": _info("command", "control", "if %b %c"),
    "doIfElse": _info("command", "control", "if %b %c else %c"),
    "doStop": _info("command", "control", "stop script"),
    "doStopAll": _info("command", "control", "stop all"),
    "doRun": _info("command", "control", "run %cmd %inputs"),
    "fork": _info("command", "control", "launch %cmd %inputs"),
    "evaluate": _info("reporter", "control", "call %r %inputs"),
    "doReport": _info("command", "control", "report %s"),
    "doCallCC": _info("command", "control", "run %cmd w/continuation"),
    "reportCallCC": _info("reporter", "control", "call %cmd w/continuation"),
    "doWarp": _info("command", "other", "warp %c"),
    # sensing
    "reportTouchingObject": _info("predicate", "sensing", "touching %col ?"),
    "doAsk": _info("command", "sensing", "ask %s and wait"),
    "reportLastAnswer": _info("reporter", "sensing", "answer"),
    "reportMouseX": _info("reporter", "sensing", "mouse x"),
    "reportMouseY": _info("reporter", "sensing", "mouse y"),
    "reportMouseDown": _info("predicate", "sensing", "mouse down?"),
    "reportKeyPressed": _info("predicate", "sensing", "key %key pressed?"),
    "doResetTimer": _info("command", "sensing", "reset timer"),
    "reportTimer": _info("reporter", "sensing", "timer"),
    # operators
    "reportSum": _info("reporter", "operators", "%n + %n"),
    "reportDifference": _info("reporter", "operators", "%n - %n"),
    "reportProduct": _info("reporter", "operators", "%n × %n"),
    "reportQuotient": _info("reporter", "operators", "%n ÷ %n"),
    "reportRound": _info("reporter", "operators", "round %n"),
    "reportModulus": _info("reporter", "operators", "%n mod %n"),
    "reportRandom": _info("reporter", "operators", "pick random %n to %n"),
    "reportLessThan": _info("predicate", "operators", "%s < %s"),
    "reportEquals": _info("predicate", "operators", "%s = %s"),
    "reportGreaterThan": _info("predicate", "operators", "%s > %s"),
    "reportAnd": _info("predicate", "operators", "%b and %b"),
    "reportOr": _info("predicate", "operators", "%b or %b"),
    "reportNot": _info("predicate", "operators", "not %b"),
    "reportTrue": _info("predicate", "operators", "true"),
    "reportFalse": _info("predicate", "operators", "false"),
    "reportJoinWords": _info("reporter", "operators", "join %words"),
    "reportLetter": _info("reporter", "operators", "letter %n of %s"),
    "reportStringSize": _info("reporter", "operators", "length of %s"),
    "reportUnicode": _info("reporter", "operators", "unicode of %s"),
    "reportUnicodeAsLetter": _info("reporter", "operators", "unicode %n as letter"),
    "reportScript": _info("reporter", "operators", "the script %parms %c"),
    "reify": _info("reporter", "operators", "the %f block %parms"),
    # variables
    "doSetVar": _info("command", "variables", "set %var to %s"),
    "doChangeVar": _info("command", "variables", "change %var by %n"),
    "doShowVar": _info("command", "variables", "show variable %var"),
    "doHideVar": _info("command", "variables", "hide variable %var"),
    "doDeclareVariables": _info("command", "other", "script variables %scriptVars"),
    # lists
    "reportNewList": _info("reporter", "lists", "list %mult%s"),
    "reportCONS": _info("reporter", "lists", "%s in front of %l"),
    "reportListItem": _info("reporter", "lists", "item %idx of %l"),
    "reportCDR": _info("reporter", "lists", "all but first of %l"),
    "reportListLength": _info("reporter", "lists", "length of %l"),
    "reportListContainsItem": _info("predicate", "lists", "%l contains %s"),
    "doAddToList": _info("command", "lists", "add %s to %l"),
    "doDeleteFromList": _info("command", "lists", "delete %ida of %l"),
    "doInsertInList": _info("command", "lists", "insert %s at %idx of %l"),
    "doReplaceInList": _info("command", "lists", "replace item %idx of %l with %s", 1, None, "thing"),
}


CATEGORY_COLORS: dict[str, Color] = {
    "motion": Color(74, 108, 212),
    "looks": Color(143, 86, 227),
    "sound": Color(207, 74, 217),
    "pen": Color(0, 161, 120),
    "control": Color(230, 168, 34),
    "sensing": Color(4, 148, 220),
    "operators": Color(98, 194, 19),
    "variables": Color(243, 118, 29),
    "lists": Color(217, 77, 17),
    "other": Color(128, 128, 128),
}


WATCHER_LABELS: dict[str, str] = {
    "xPosition": "x position",
    "yPosition": "y position",
    "direction": "direction",
    "getScale": "size",
    "getTimer": "timer",
    "getCostumeIdx": "costume #",
}


def category_color(category: str | None) -> Color:
    return CATEGORY_COLORS.get(category or "other", CATEGORY_COLORS["other"])
