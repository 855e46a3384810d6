"""Authentication routes"""
from datetime import timedelta
from urllib.parse import urlparse
from flask import (render_template, redirect, url_for, flash, request, session,
                   current_app, jsonify)
from flask_login import login_user, logout_user, current_user
from loantrack import db
from loantrack.auth import auth_bp
from loantrack.auth.forms import EmailForm, CodeForm
from loantrack.auth.otp import issue_code, verify_code, open_session, close_session
from loantrack.utils.helpers import log_activity, normalize_email


def _safe_next(target):
    if not target or urlparse(target).netloc != '':
        return url_for('main.dashboard')
    return target


def _start_session(email):
    """Open a session for a verified email and sign the browser in"""
    record = open_session(email)
    hours = current_app.config['SESSION_LIFETIME_HOURS']
    login_user(record, remember=True, duration=timedelta(hours=hours))
    session.pop('pending_email', None)

    log_activity('login', entity_type='session', entity_id=record.id,
                 description=f'{record.email} signed in', email=record.email)
    db.session.commit()
    return record


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """Request a sign-in code"""
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    form = EmailForm()
    if form.validate_on_submit():
        result = issue_code(form.email.data)

        if result.status == 403:
            return redirect(url_for('auth.unauthorized'))

        if not result.ok:
            flash(result.message, 'danger')
            return render_template('auth/login.html', title='Sign In', form=form), result.status

        session['pending_email'] = normalize_email(form.email.data)
        flash(result.message, 'success')
        return redirect(url_for('auth.verify', next=request.args.get('next')))

    return render_template('auth/login.html', title='Sign In', form=form)


@auth_bp.route('/verify', methods=['GET', 'POST'])
def verify():
    """Check the emailed code and sign in"""
    if current_user.is_authenticated:
        return redirect(url_for('main.dashboard'))

    pending_email = session.get('pending_email')
    if not pending_email:
        flash('Enter your email to receive a sign-in code.', 'info')
        return redirect(url_for('auth.login'))

    form = CodeForm()
    if request.method == 'GET':
        form.email.data = pending_email

    if form.validate_on_submit():
        if not verify_code(form.email.data, form.code.data):
            form.code.errors.append('Invalid or expired code')
            return render_template('auth/verify.html', title='Verify', form=form,
                                   email=pending_email), 401

        record = _start_session(form.email.data)
        flash(f'Welcome back, {record.email}!', 'success')
        return redirect(_safe_next(request.args.get('next')))

    return render_template('auth/verify.html', title='Verify', form=form, email=pending_email)


@auth_bp.route('/logout', methods=['GET', 'POST'])
def logout():
    """End the current session"""
    if current_user.is_authenticated:
        log_activity('logout', entity_type='session', entity_id=current_user.id,
                     description=f'{current_user.email} signed out')
        db.session.commit()
        close_session(current_user._get_current_object())

    logout_user()
    flash('You have been signed out successfully.', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/unauthorized')
def unauthorized():
    """Shown to addresses outside the allowlist"""
    return render_template('auth/unauthorized.html', title='Not Authorized'), 403


@auth_bp.route('/check-session')
def check_session():
    """Report whether the browser holds a valid session"""
    if not current_user.is_authenticated:
        return jsonify({'authenticated': False, 'message': 'No valid session'})
    return jsonify({
        'authenticated': True,
        'email': current_user.email,
        'verified': current_user.verified,
        'expires_at': current_user.expires_at.isoformat(),
    })


@auth_bp.route('/api/otp/request', methods=['POST'])
def api_request_code():
    """JSON variant of the sign-in code request"""
    payload = request.get_json(silent=True) or {}
    result = issue_code(payload.get('email'))
    return jsonify({'success': result.ok, 'message': result.message}), result.status


@auth_bp.route('/api/otp/verify', methods=['POST'])
def api_verify_code():
    """JSON variant of code verification"""
    payload = request.get_json(silent=True) or {}
    email = normalize_email(payload.get('email'))
    code = payload.get('otp') or payload.get('code')

    if not email or '@' not in email:
        return jsonify({'success': False, 'message': 'Valid email is required'}), 400
    if not isinstance(code, str) or len(code.strip()) != current_app.config['OTP_LENGTH']:
        return jsonify({'success': False, 'message': 'Valid 6-digit code is required'}), 400
    if not verify_code(email, code):
        return jsonify({'success': False, 'message': 'Invalid or expired code'}), 401

    _start_session(email)
    return jsonify({
        'success': True,
        'message': 'Code verified successfully',
        'redirectUrl': url_for('main.dashboard'),
        'session': {'email': email, 'verified': True},
    })
