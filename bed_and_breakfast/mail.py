"""Outgoing mail.

Messages are pushed onto an in-process queue and delivered by a single
background worker, one SMTP connection per message. Nothing is retried
and anything still queued when the process exits is lost.
"""

import logging
import queue
import smtplib
import threading
from dataclasses import dataclass
from pathlib import Path

from django.conf import settings
from django.core.mail import EmailMessage, get_connection

logger = logging.getLogger(__name__)

BODY_PLACEHOLDER = "[%body%]"


@dataclass
class MailData:
    to: str
    subject: str
    content: str
    from_email: str = ""
    template: str = ""


def render_body(mail_data):
    if not mail_data.template:
        return mail_data.content

    path = Path(settings.MAIL_TEMPLATE_DIR) / mail_data.template
    try:
        template = path.read_text(encoding="utf-8")
    except OSError:
        logger.exception("Cannot read mail template %s", path)
        return mail_data.content

    return template.replace(BODY_PLACEHOLDER, mail_data.content, 1)


def send_message(mail_data):
    """Deliver one message. Failures are logged, never raised."""
    message = EmailMessage(
        subject=mail_data.subject,
        body=render_body(mail_data),
        from_email=mail_data.from_email or settings.DEFAULT_FROM_EMAIL,
        to=[mail_data.to],
        connection=get_connection(timeout=settings.EMAIL_TIMEOUT),
    )
    message.content_subtype = "html"

    try:
        message.send()
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send mail %r to %s", mail_data.subject, mail_data.to)
        return False

    logger.info("Mail %r sent to %s", mail_data.subject, mail_data.to)
    return True


class MailQueue:
    def __init__(self):
        self._queue = queue.Queue()
        self._worker = None
        self._lock = threading.Lock()

    def put(self, mail_data):
        self._ensure_worker()
        self._queue.put(mail_data)

    def join(self):
        """Block until every queued message has been handled."""
        self._queue.join()

    def _ensure_worker(self):
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._run, name="mail-worker", daemon=True)
            self._worker.start()
            logger.info("Mail worker started")

    def _run(self):
        while True:
            mail_data = self._queue.get()
            try:
                send_message(mail_data)
            except Exception:
                logger.exception("Unexpected error while sending mail to %s", mail_data.to)
            finally:
                self._queue.task_done()


mail_queue = MailQueue()
