"""
channels — Per-channel delivery transports.

    email_channel     MailTransport  send_mail(from, to, subject, html_body)
    telegram_channel  ChatTransport  send_message(chat_id, text)

Transports are stateless per call: they return on success and raise
ChannelError on failure. Outcome capture lives in the dispatcher.
"""
