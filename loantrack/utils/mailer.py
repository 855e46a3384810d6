"""Outgoing email over SMTP"""
import logging
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from flask import current_app

logger = logging.getLogger(__name__)


class Mailer:
    """Sends HTML email; ``send`` reports success instead of raising"""

    def __init__(self, host, port, username=None, password=None, use_ssl=False,
                 sender=None, timeout=15, dev_fallback=False):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.sender = sender
        self.timeout = timeout
        self.dev_fallback = dev_fallback

    @classmethod
    def from_config(cls, config):
        return cls(
            host=config['SMTP_HOST'],
            port=config['SMTP_PORT'],
            username=config.get('SMTP_USER'),
            password=config.get('SMTP_PASSWORD'),
            use_ssl=config.get('SMTP_SECURE', False),
            sender=config.get('SMTP_FROM'),
            timeout=config.get('SMTP_TIMEOUT', 15),
            dev_fallback=config.get('MAIL_DEV_FALLBACK', False),
        )

    def build_message(self, to, subject, html, sender=None, text=None):
        message = EmailMessage()
        message['From'] = sender or self.sender
        message['To'] = to
        message['Subject'] = subject
        message['Message-ID'] = make_msgid()
        message.set_content(text or 'This message requires an HTML capable mail client.')
        message.add_alternative(html, subtype='html')
        return message

    def _connect(self):
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        connection = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        connection.starttls()
        return connection

    def send(self, to, subject, html, sender=None, text=None):
        """Deliver one message; True on success"""
        message = self.build_message(to, subject, html, sender=sender, text=text)
        try:
            with self._connect() as connection:
                if self.username:
                    connection.login(self.username, self.password)
                connection.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            if self.dev_fallback:
                logger.warning('Mail to %s not delivered (%s); development fallback:\n%s',
                               to, e, text or subject)
                return True
            logger.error('Failed to send mail to %s: %s', to, e)
            return False

        logger.info('Mail sent to %s: %s', to, message['Message-ID'])
        return True


def get_mailer():
    """The mailer registered on the running app"""
    return current_app.extensions['mailer']
