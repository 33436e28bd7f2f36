"""Notification template definitions.

A template declares the variables it expects and, per channel, a subject
and body written as ``str.format`` patterns. Rendering happens inside the
channel provider at send time.
"""

from dataclasses import dataclass

from notifications.channel.errors import TemplateNotFoundError, TemplateRenderError


@dataclass(frozen=True)
class ChannelContent:
    body: str
    subject: str | None = None


class NotificationTemplate:
    template_id: str = ""
    variables: tuple[str, ...] = ()
    channels: dict[str, ChannelContent] = {}

    @classmethod
    def supports(cls, channel: str) -> bool:
        return channel in cls.channels

    @classmethod
    def render(cls, channel: str, context: dict) -> dict:
        content = cls.channels.get(channel)
        if content is None:
            raise TemplateNotFoundError(cls.template_id, channel)

        try:
            subject = content.subject.format_map(context) if content.subject else None
            body = content.body.format_map(context)
        except KeyError as exc:
            raise TemplateRenderError(
                f"Template {cls.template_id} is missing variable {exc.args[0]} for {channel}"
            ) from None
        except (IndexError, ValueError) as exc:
            raise TemplateRenderError(f"Template {cls.template_id} could not be rendered: {exc}") from None

        return {"subject": subject, "body": body}
