"""Pacote do relay webhook -> XMPP.

Este pacote contém:
- constants: variáveis de ambiente e helpers de configuração
- errors: exceções e a política de erros best-effort (ErrorSink)
- address: endereço XMPP (local@domínio/recurso)
- messages: AlertMessage, Delivery e decodificação de stanzas
- session: sessão XMPP única (slixmpp) com escrita serializada
- dispatcher: leitura das stanzas recebidas e eco das mensagens de chat
- fanout: consumo da fila de alertas e envio para cada destinatário
- parsers: conversão dos webhooks (Grafana, Alertmanager, Slack)
- controller: criação do Flask app e endpoints
"""
