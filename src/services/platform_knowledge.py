"""Product knowledge the assistant relies on: keyword dictionaries, broker topics and canned texts."""

PLATFORM_NAME = "iziBrokerz"
ASSISTANT_NAME = "IzA"

# Funnel operation keys and the words that reveal them
OPERATION_KEYWORDS = {
    "venda": ["comprar", "compra", "compro", "adquirir", "venda", "à venda", "a venda", "pra comprar"],
    "locacao": ["alugar", "aluguel", "aluga", "locação", "locacao", "pra alugar", "para alugar"],
    "temporada": ["temporada", "temporário", "temporario", "veraneio", "férias", "ferias"],
}

OPERATION_LABELS = {
    "venda": "Venda",
    "locacao": "Locação",
    "temporada": "Temporada",
}

PROPERTY_TYPE_KEYWORDS = {
    "apartamento": ["apartamento", "apartamentos", "apto", "aptos", "ap"],
    "casa": ["casa", "casas", "residência", "residencia"],
    "terreno": ["terreno", "terrenos", "lote", "lotes"],
    "comercial": ["comercial", "loja", "lojas", "sala comercial", "ponto comercial"],
    "kitnet": ["kitnet", "kitnets", "kitinete", "quitinete", "studio", "estudio", "estúdio"],
    "sobrado": ["sobrado", "sobrados", "assobradada", "assobradadas", "assobradado", "assobradados"],
    "cobertura": ["cobertura", "coberturas", "duplex", "triplex", "penthouse"],
    "chacara": ["chácara", "chacara", "chácaras", "sítio", "sitio", "granja", "granjas"],
    "fazenda": ["fazenda", "fazendas", "propriedade rural"],
    "galpao": ["galpão", "galpao", "barracão", "barracao"],
}

BROKER_KEYWORDS = ["corretor", "corretora", "parceiro", "parceria", "planos", "anunciar"]

CLOSING_KEYWORDS = ["obrigado", "obrigada", "valeu", "agradeço", "tchau", "até mais", "era isso", "só isso"]

RESTART_KEYWORDS = ["nova busca", "recomeçar", "recomecar", "começar de novo"]

EXPAND_SEARCH_KEYWORDS = [
    "ampliar", "expandir", "outros bairros", "toda a cidade", "qualquer bairro",
    "outras regiões", "outras regioes", "cidade toda",
]

BROKER_TOPICS = [
    {
        "title": "Rede de Parcerias",
        "keywords": ["parceria", "parcerias", "rede"],
        "icon": "🤝",
        "description": (
            "No sistema de parcerias, aproximamos Corretores da sua região, criando oportunidades "
            "de negócios. O que você prefere... 50% de algo ou 100% de nada?! Ao aceitar parceria, "
            "seu imóvel aparece na página de todos os corretores parceiros da sua cidade!"
        ),
    },
    {
        "title": "Página Profissional",
        "keywords": ["página", "pagina", "site", "vitrine"],
        "icon": "🌐",
        "description": (
            "Por que divulgar somente um imóvel se você pode divulgar TODO seu portfólio? Ter sua "
            "própria vitrine de ofertas demonstra profissionalismo e cuidado com a imagem do seu "
            "negócio. É um diferencial de Alta Performance!"
        ),
    },
    {
        "title": "MATCH Inteligente",
        "keywords": ["match"],
        "icon": "🎯",
        "description": (
            "Ao cadastrar um cliente, a iziBrokerz busca automaticamente imóveis compatíveis na "
            "região. Sem mistério, sem complicação! E fique tranquilo(a): as informações do seu "
            "cliente são SUAS e protegidas pela LGPD."
        ),
    },
    {
        "title": "Venda Mais com IA",
        "keywords": ["ia", "inteligência artificial", "inteligencia artificial"],
        "icon": "🤖",
        "description": (
            "Nossa Inteligência Artificial trabalha 24h para qualificar leads e te entregar "
            "oportunidades reais de negócio."
        ),
    },
    {
        "title": "CRM Automático",
        "keywords": ["crm", "planilha", "planilhas"],
        "icon": "📊",
        "description": "Organize seus atendimentos sem perder tempo com planilhas.",
    },
    {
        "title": "Planos e Preços",
        "keywords": ["planos", "plano", "preço", "preços", "assinatura"],
        "icon": "💰",
        "description": (
            "Nossa plataforma oferece planos personalizados para cada momento da sua carreira. "
            "[Clique aqui](/partner) para ver nossos planos detalhados."
        ),
    },
]

BROKER_EDUCATION_TIPS = [
    "📸 **Dica da IzA:** Fotos com iluminação natural e ambientes organizados aumentam em até 3x os cliques no anúncio!",
    "💰 **Precificação:** Imóveis com preço 5% acima da média da região demoram o dobro para vender. Vale a pena conferir a avaliação!",
    "⚡ **Agilidade:** Responder leads em menos de 1 hora aumenta suas chances de conversão em 7x. Fique ligado nas notificações!",
]

VOICE_RULES = [
    "SEMPRE use quebras de linha para separar assuntos diferentes na mesma mensagem.",
    "Seja direto e evite rodeios.",
    "Use linguagem amigável e acessível.",
    "Use emojis com moderação (1-2 por mensagem).",
    "Sempre termine com uma ação ou pergunta relevante.",
]

GOLDEN_RULES = [
    "NUNCA seja insistente ou agressiva se o usuário disser 'não'.",
    "NUNCA compartilhe dados pessoais de outros usuários.",
    "NUNCA invente imóveis, preços ou links que não estejam no contexto.",
    "NUNCA critique outras plataformas ou concorrentes.",
]

GREETING = "Olá! Sou a IzA, assistente virtual da iziBrokerz. Vamos encontrar seu novo lar ou ampliar seus negócios?"
CLOSING_REPLY = "Espero ter ajudado! 😊 Se precisar de algo mais, é só chamar."
NO_RESULTS_REPLY = (
    "Ainda não temos imóveis com esse perfil, mas posso ampliar a busca ou "
    "registrar seu pedido para os corretores parceiros!"
)
BROKER_HEADLINE = "A Solução Completa para Vender Mais e Captar Leads Qualificados"
