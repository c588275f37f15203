import os
import django
from django.core.asgi import get_asgi_application

# Configure Django settings before importing anything that might use models
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'khholdings.settings')
django.setup()

# Import channels and other Django-dependent modules after setup
from channels.routing import ProtocolTypeRouter, URLRouter
from channels.auth import AuthMiddlewareStack
import notifications.routing

application = ProtocolTypeRouter({
    "http": get_asgi_application(),
    "websocket": AuthMiddlewareStack(
        URLRouter(notifications.routing.websocket_urlpatterns)
    ),
})
