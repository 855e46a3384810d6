#!/usr/bin/env python3
"""Application entry point"""
import os
import sys


def init_database():
    """Initialize the database"""
    from loantrack import create_app, db
    app = create_app(os.getenv('FLASK_ENV') or 'development')
    with app.app_context():
        db.create_all()
        print("Database initialized!")


def send_reminders():
    """Run the weekly payment reminder job once"""
    from loantrack import create_app
    from loantrack.reminders.tasks import send_payment_reminders

    app = create_app(os.getenv('FLASK_ENV') or 'development')
    with app.app_context():
        report = send_payment_reminders()

    if report.pending == 0:
        print("No pending payments, nothing sent.")
        return 0

    print("Pending payments: {}".format(report.pending))
    for result in report.results:
        print("  {} {}".format('sent  ' if result.success else 'FAILED', result.email))

    if report.sent == 0:
        print("No reminder emails were sent!")
        return 1
    return 0


if __name__ == '__main__':
    # Handle command-line arguments
    if len(sys.argv) > 1:
        command = sys.argv[1]
        if command == 'init-db':
            init_database()
        elif command == 'send-reminders':
            sys.exit(send_reminders())
        else:
            print("Unknown command: {}".format(command))
            print("Available commands: init-db, send-reminders")
            sys.exit(1)
    else:
        # Run the Flask development server
        from loantrack import create_app
        app = create_app(os.getenv('FLASK_ENV') or 'development')
        app.run(host='0.0.0.0', port=int(os.getenv('PORT') or 5000), debug=True)
