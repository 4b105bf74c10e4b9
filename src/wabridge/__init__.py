"""WhatsApp bridge to n8n / Flowise workflow backends."""
