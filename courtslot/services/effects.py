import logging
from dataclasses import dataclass, field

from blinker import Namespace

from courtslot.utils import emailer

logger = logging.getLogger(__name__)

_signals = Namespace()

# receivers get the event name and a JSON-able payload
booking_status_changed = _signals.signal("booking-status-changed")

MAIL = "mail"
BROADCAST = "broadcast"


@dataclass
class Effect:
    kind: str
    target: str
    payload: dict = field(default_factory=dict)


def mail(to_email, template: str, **context):
    return Effect(MAIL, to_email, context | {"template": template})


def broadcast(event: str, **payload):
    return Effect(BROADCAST, event, payload)


def booking_context(booking, **extra):
    name = booking.booking_for_user_name
    if not name and booking.user is not None:
        name = booking.user.display_name
    ctx = {
        "name": name or "player",
        "court": booking.court.name if booking.court else f"court {booking.court_id}",
        "start": booking.start_time.strftime("%Y-%m-%d %H:%M"),
        "end": booking.end_time.strftime("%Y-%m-%d %H:%M"),
    }
    ctx.update(extra)
    return ctx


def _send(effect: Effect):
    if effect.kind == MAIL:
        if not effect.target:
            return None
        context = dict(effect.payload)
        template = context.pop("template")
        ok, err = emailer.send_template(effect.target, template, **context)
        if ok:
            return None
        if err == emailer.NOT_CONFIGURED:
            logger.debug("mail %s to %s skipped: %s", template, effect.target, err)
            return None
        return f"mail {template} to {effect.target} failed: {err}"

    if effect.kind == BROADCAST:
        booking_status_changed.send(effect.target, **effect.payload)
        return None

    raise ValueError(f"unknown effect kind {effect.kind}")


def dispatch(effects):
    """Runs post-commit effects. A failing effect never undoes the commit, it becomes a warning."""
    warnings = []
    for effect in effects or []:
        try:
            problem = _send(effect)
        except Exception as exc:
            logger.exception("effect %s/%s raised", effect.kind, effect.target)
            problem = f"{effect.kind} {effect.target} failed: {exc}"
        if problem:
            logger.warning(problem)
            warnings.append(problem)
    return warnings


def run(outcome):
    outcome.warnings.extend(dispatch(outcome.effects))
    outcome.effects = []
    return outcome
