TWILIO_WHATSAPP_WEBHOOK_URL = "/api/v1/webhooks/twilio/whatsapp"
