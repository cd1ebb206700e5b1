"""
Rotas da API REST v1 (checkout, pedidos, pagamentos, frete, estoque e endereços).
"""
from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views


urlpatterns = [
    # ====================================================================
    # 1. AUTENTICAÇÃO (JWT)
    # ====================================================================
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    # ====================================================================
    # 2. PEDIDOS E PAGAMENTOS
    # ====================================================================
    path('orders', views.PedidosAPIView.as_view(), name='pedidos'),
    path('orders/<uuid:pedido_id>', views.PedidoDetalheAPIView.as_view(), name='pedido_detalhe'),
    path('orders/<uuid:pedido_id>/retry-payment', views.RetentarPagamentoAPIView.as_view(), name='retentar_pagamento'),
    path('orders/<uuid:pedido_id>/payment-status', views.StatusPagamentoAPIView.as_view(), name='status_pagamento'),
    path('orders/<uuid:pedido_id>/cancel', views.CancelarPedidoAPIView.as_view(), name='cancelar_pedido'),

    # ====================================================================
    # 3. FRETE E ESTOQUE
    # ====================================================================
    path('shipping/calculate', views.CalcularFreteAPIView.as_view(), name='calcular_frete'),
    path('inventory/validate', views.ValidarEstoqueAPIView.as_view(), name='validar_estoque'),

    # ====================================================================
    # 4. ENDEREÇOS DO USUÁRIO
    # ====================================================================
    path('user/addresses', views.EnderecosAPIView.as_view(), name='enderecos'),
    path('user/addresses/<uuid:endereco_id>', views.EnderecoDetalheAPIView.as_view(), name='endereco_detalhe'),
    path('user/addresses/<uuid:endereco_id>/default', views.EnderecoPrincipalAPIView.as_view(),
         name='endereco_principal'),

    # Webhook do PagBank (Rota externa, não requer autenticação)
    path('webhooks/pagbank', views.WebhookPagBankAPIView.as_view(), name='webhook_pagbank'),
]
