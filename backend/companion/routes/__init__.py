"""
Companion Backend — API Routes
================================

Route Inventory:
    - auth.py:           /api/auth/register, /login, /verify-email
    - users.py:          /api/users/profile, /creator-settings, upload URLs,
                         /api/files/{path} (dev profile images)
    - kyc.py:            /api/kyc/*, /api/admin/kyc/*
    - admin.py:          /api/admin/seed, /api/admin/clear
    - content.py:        /api/creators/*, /api/posts*, /api/feed, /api/messages/*
    - bookings.py:       /api/bookings/* including chat and reviews
    - subscriptions.py:  /api/stripe/*, /api/subscriptions/*
    - health.py:         /health

Routes stay thin: they extract input, call a service singleton, and return
its schema. Errors are raised by services and rendered by the handlers in
main.py.
"""
