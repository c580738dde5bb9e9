"""
Email service for verification, staff invitations and parent welcome messages.
Uses Flask-Mail for SMTP integration with UTF-8 support.

Every sender returns True/False and never raises: a failed notification must
not undo the state change that preceded it. The resend endpoints are the
recovery path.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message
from markupsafe import escape

logger = logging.getLogger(__name__)

mail = Mail()

APP_NAME = 'Daycare Manager'


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is configured.
    With MAIL_SUPPRESS_SEND Flask-Mail still dispatches (and records) the
    message without opening an SMTP connection.
    """
    cfg = current_app.config
    return bool(cfg.get("MAIL_SERVER") and cfg.get("MAIL_USERNAME"))


def _frontend_url() -> str:
    return current_app.config['FRONTEND_URL'].rstrip('/')


def _button(url: str, label: str, color: str) -> str:
    return f"""
        <div style="text-align: center; margin: 30px 0;">
            <a href="{url}"
               style="background-color: {color}; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
              {label}
            </a>
        </div>
        <p>If the button doesn't work, you can copy and paste this link into your browser:</p>
        <p style="word-break: break-all; color: #666;">{url}</p>
    """


def send_email(to: str, subject: str, html: str, text: str | None = None) -> bool:
    """
    Send a single email.

    Args:
        to: Recipient email
        subject: Email subject
        html: HTML body
        text: Plain text body (optional)

    Returns:
        True if sent (or mail disabled), False if delivery failed
    """
    try:
        if not _mail_enabled():
            logger.warning(f"[MAIL DISABLED] Email '{subject}' skipped for {to}")
            return True

        msg = Message(
            subject=subject,
            recipients=[to],
            body=text,
            html=html
        )
        mail.send(msg)
        logger.info(f"[EMAIL] Email '{subject}' sent to {to}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Failed to send email to {to}: {str(e)}")
        return False


def send_verification_email(to_email: str, first_name: str, verification_token: str) -> bool:
    """Email with the link that confirms ownership of the address (valid 24h)."""
    verification_url = f"{_frontend_url()}/verify-email?token={verification_token}"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Welcome to {APP_NAME}, {escape(first_name)}!</h2>
        <p>To complete your registration, please verify your email address by clicking the button below:</p>
        {_button(verification_url, 'Verify Email Address', '#4F46E5')}
        <p>This verification link will expire in 24 hours.</p>
        <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
        <p style="color: #888; font-size: 12px;">
            If you didn't create this account, you can safely ignore this email.
        </p>
    </div>
    """

    text_body = f"""
Welcome to {APP_NAME}, {first_name}!

To complete your registration, please verify your email address by visiting:

{verification_url}

This verification link will expire in 24 hours.

If you didn't create this account, you can safely ignore this email.
"""

    return send_email(
        to_email,
        f'Verify Your Email Address - {APP_NAME}',
        html_body,
        text_body
    )


def send_staff_invitation_email(
    to_email: str,
    first_name: str,
    invitation_token: str,
    inviter_name: str,
    tenant_name: str
) -> bool:
    """
    Send a staff invitation.

    Args:
        to_email: Recipient email
        first_name: Invitee first name
        invitation_token: Opaque token embedded in the accept link
        inviter_name: Full name of the admin who sent the invitation
        tenant_name: Daycare name

    Returns:
        True if sent successfully, False otherwise
    """
    logger.info(f"[EMAIL] Preparing invitation for {to_email} ({tenant_name})")
    invitation_url = f"{_frontend_url()}/accept-invitation?token={invitation_token}"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>You're Invited to Join {escape(tenant_name)}!</h2>
        <p>Hello {escape(first_name)},</p>
        <p>{escape(inviter_name)} has invited you to join {escape(tenant_name)} using {APP_NAME}.</p>
        {_button(invitation_url, 'Accept Invitation', '#10B981')}
        <p>By accepting this invitation, you'll be able to:</p>
        <ul>
            <li>Access your daycare management dashboard</li>
            <li>Manage children and attendance</li>
            <li>Communicate with parents</li>
            <li>Create daily reports</li>
        </ul>
        <p><strong>Important:</strong> This invitation will expire in 72 hours.</p>
        <hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">
        <p style="color: #888; font-size: 12px;">
            If you weren't expecting this invitation, you can safely ignore this email.
        </p>
    </div>
    """

    text_body = f"""
You're Invited to Join {tenant_name}!

Hello {first_name},

{inviter_name} has invited you to join {tenant_name} using {APP_NAME}.

To accept this invitation and set up your account, visit:
{invitation_url}

Important: This invitation will expire in 72 hours.

If you weren't expecting this invitation, you can safely ignore this email.
"""

    return send_email(
        to_email,
        f"You're invited to join {tenant_name} - {APP_NAME}",
        html_body,
        text_body
    )


def send_parent_welcome_email(
    to_email: str,
    first_name: str,
    temporary_password: str,
    verification_token: str
) -> bool:
    """Welcome email for a parent account created by staff (temp password + verify link)."""
    verification_url = f"{_frontend_url()}/verify-email?token={verification_token}"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Welcome to {APP_NAME}, {escape(first_name)}!</h2>
        <p>Your child has been enrolled and we've created a parent account for you.</p>
        <div style="background-color: #f9f9f9; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h3>Your Account Details:</h3>
            <p><strong>Email:</strong> {escape(to_email)}</p>
            <p><strong>Temporary Password:</strong> <code>{temporary_password}</code></p>
        </div>
        <p><strong>Important:</strong> Please verify your email address and change your password after your first login.</p>
        {_button(verification_url, 'Verify Email & Get Started', '#4F46E5')}
        <p>This verification link will expire in 24 hours.</p>
    </div>
    """

    text_body = f"""
Welcome to {APP_NAME}, {first_name}!

Your child has been enrolled and we've created a parent account for you.

Email: {to_email}
Temporary Password: {temporary_password}

Please verify your email address and change your password after your first login:
{verification_url}

This verification link will expire in 24 hours.
"""

    return send_email(
        to_email,
        f'Welcome to {APP_NAME} - Your Child Has Been Enrolled!',
        html_body,
        text_body
    )
