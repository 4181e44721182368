"""TwiML documents returned to the telephony provider."""

from xml.sax.saxutils import escape, quoteattr

VOICE = "alice"
GATHER_ACTION = "/webhooks/voice"
BRAND = "RepMotivatedSeller"

XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'


def _say(text: str) -> str:
    return f'<Say voice="{VOICE}">{escape(text)}</Say>'


def _gather(prompt: str) -> str:
    return (
        f'<Gather input="speech" timeout="10" speechTimeout="3" action={quoteattr(GATHER_ACTION)} method="POST">'
        f"{_say(prompt)}</Gather>"
    )


def _dial(number: str, **attrs: str) -> str:
    extra = "".join(f" {k}={quoteattr(v)}" for k, v in attrs.items())
    return f"<Dial{extra}><Number>{escape(number)}</Number></Dial>"


def _document(*parts: str) -> str:
    body = "\n  ".join(parts)
    return f"{XML_HEADER}\n<Response>\n  {body}\n</Response>"


def say(message: str) -> str:
    return _document(_say(message))


def greeting(agent_number: str) -> str:
    return _document(
        _say(
            f"Hello and thank you for calling {BRAND}, your trusted foreclosure assistance partner. "
            "I'm your AI assistant, and I'm here to help you with your foreclosure questions and concerns. "
            "To better assist you, please tell me in a few words what you're calling about today. "
            'For example, you can say "foreclosure help", "check my case status", '
            '"speak to an agent", or "schedule an appointment".'
        ),
        _gather("Please speak now."),
        _say("I didn't hear anything. Let me transfer you to one of our specialists."),
        _dial(agent_number),
    )


def handoff(agent_number: str) -> str:
    return _document(
        _say(
            "I understand you need to speak with one of our specialists. Let me connect you now. "
            "Please hold while I transfer your call."
        ),
        _dial(agent_number, timeout="30", record="record-from-answer"),
        _say(
            "I apologize, but all our specialists are currently busy. Please leave your name and "
            "phone number after the beep, and we'll call you back within one hour."
        ),
        f'<Record timeout="60" transcribe="true" action={quoteattr(GATHER_ACTION)} />',
    )


def conversation(message: str, next_action: str, scheduling_number: str) -> str:
    parts = [_say(message)]
    if next_action == "continue_conversation":
        parts.append(_gather("How else can I help you today?"))
        parts.append(_say(f"Thank you for calling {BRAND}. Have a great day!"))
    elif next_action == "schedule_appointment":
        parts.append(_say("I'll connect you with our scheduling system to book your consultation."))
        parts.append(_dial(scheduling_number))
    return _document(*parts)
