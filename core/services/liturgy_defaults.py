NONE_ROLE_KEY = "NONE"

DEFAULT_LITURGY_ROLES = [
    {"key": "TURIFERARIO", "label": "Turiferario", "description": "Conduz o turibulo/incenso.", "score": 100},
    {"key": "MISSAL", "label": "Missal", "description": "Auxilia o celebrante com o missal.", "score": 90},
    {"key": "CREDENCIA", "label": "Credencia", "description": "Responsavel pela preparacao da credencia.", "score": 80},
    {"key": "AMBAO", "label": "Ambao", "description": "Assistencia no ambao e leitura.", "score": 70},
    {"key": "SINO_1", "label": "Sino 1", "description": "Toque de sino na consagracao.", "score": 60},
    {
        "key": "ACOMPANHANTE_DO_LEITOR",
        "label": "Acompanhante do leitor",
        "description": "Apoio direto ao leitor.",
        "score": 50,
    },
    {"key": "SINO_2", "label": "Sino 2", "description": "Apoio adicional no sino.", "score": 40},
    {"key": "TOCHA_1", "label": "Tocha 1", "description": "Conducao da tocha 1.", "score": 30},
    {"key": "TOCHA_2", "label": "Tocha 2", "description": "Conducao da tocha 2.", "score": 20},
    {"key": NONE_ROLE_KEY, "label": "Funcao livre", "description": "Espaco para funcao adicional na missa.", "score": 0},
]

DEFAULT_LITURGY_MASS_TYPES = [
    {
        "key": "SIMPLES",
        "label": "Simples",
        "role_keys": [
            "MISSAL",
            "CREDENCIA",
            "AMBAO",
            "SINO_1",
            "ACOMPANHANTE_DO_LEITOR",
            "TOCHA_1",
            "TOCHA_2",
            NONE_ROLE_KEY,
        ],
    },
    {
        "key": "SOLENE",
        "label": "Solene",
        "role_keys": [
            "TURIFERARIO",
            "MISSAL",
            "CREDENCIA",
            "AMBAO",
            "SINO_1",
            "ACOMPANHANTE_DO_LEITOR",
            "SINO_2",
            "TOCHA_1",
            "TOCHA_2",
            NONE_ROLE_KEY,
        ],
    },
    {
        "key": "PALAVRA",
        "label": "Palavra",
        "role_keys": ["CREDENCIA", "AMBAO", "ACOMPANHANTE_DO_LEITOR", NONE_ROLE_KEY],
    },
]
