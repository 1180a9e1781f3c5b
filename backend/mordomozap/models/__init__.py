from .whatsapp_integrations import WhatsAppIntegration
