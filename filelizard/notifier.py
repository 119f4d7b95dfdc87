import smtplib
from email.message import EmailMessage

from filelizard.errors import ServiceEventIds


class NotificationSender:
    """
    Sends one email per notification.

    Delivery is attempted exactly once; failures are logged and never
    reach the caller.
    """

    def __init__(self, sink, smtp_factory=smtplib.SMTP):
        self.sink = sink
        self.smtp_factory = smtp_factory

    def build_message(self, settings, message):
        msg = EmailMessage()
        msg["From"] = settings.send_from
        msg["To"] = settings.send_to
        msg["Subject"] = message.subject
        msg.set_content(message.body)
        return msg

    def send(self, settings, message):
        try:
            msg = self.build_message(settings, message)
            with self.smtp_factory(settings.smtp_server) as smtp:
                smtp.send_message(msg)
        except Exception as e:
            self.sink.error(
                f"The Monitor Service encountered an error sending notification: {e}",
                ServiceEventIds.SMTP_FAILURE,
            )
