"""
Companion Backend — Services Layer
====================================

Business rules live here; routes only translate HTTP to service calls.

Service Inventory:
    - PaymentGateway (abstract) / StripeGateway: retried, circuit-broken Stripe calls
    - StorageService: S3 keys and presigned URLs
    - FileService: local profile image validation and storage (development)
    - EmailService: Postmark transactional email, best-effort
    - AuthService, UserService, KycService, AdminService
    - CreatorService, PostService, MessageService
    - BookingService, ChatService, ReviewService
    - SubscriptionService, ConnectService, WebhookService

Each module exposes a singleton (e.g. `booking_service`). Methods take the
request's AsyncSession and flush; the session dependency commits.
"""
