# caixafacil/core/models.py
from dataclasses import dataclass, field

INCOME = "income"
EXPENSE = "expense"

INCOME_CATEGORIES = {
    "vendas": "Vendas de produtos/serviços",
    "servicos": "Prestação de serviços, honorários",
    "investimentos": "Rendimentos de investimentos",
    "emprestimos_recebidos": "Empréstimos recebidos",
    "outras_receitas": "Outras receitas",
}

EXPENSE_CATEGORIES = {
    "salarios_funcionarios": "Salários e folha de pagamento",
    "fornecedores": "Pagamentos a fornecedores",
    "aluguel": "Aluguel",
    "contas_servicos": "Luz, água, internet, telefone",
    "impostos_taxas": "Impostos e taxas",
    "marketing_publicidade": "Marketing",
    "equipamentos_materiais": "Equipamentos e materiais",
    "manutencao": "Manutenção",
    "combustivel_transporte": "Combustível e transporte",
    "emprestimos_pagos": "Pagamento de empréstimos",
    "outras_despesas": "Outras despesas",
}

DEFAULT_CATEGORY = {
    INCOME: "outras_receitas",
    EXPENSE: "outras_despesas",
}


def categories_for(tx_type):
    return INCOME_CATEGORIES if tx_type == INCOME else EXPENSE_CATEGORIES


def default_category(tx_type):
    return DEFAULT_CATEGORY[INCOME if tx_type == INCOME else EXPENSE]


@dataclass
class Transaction:
    date: str
    description: str
    amount: float
    type: str

    @property
    def signed_amount(self) -> float:
        return -abs(self.amount) if self.type == EXPENSE else abs(self.amount)


@dataclass
class CategorizedTransaction(Transaction):
    category: str = None
    was_defaulted: bool = False

    @classmethod
    def from_transaction(cls, tx, category, was_defaulted=False):
        return cls(
            date=tx.date,
            description=tx.description,
            amount=tx.amount,
            type=tx.type,
            category=category,
            was_defaulted=was_defaulted,
        )


@dataclass
class ImportResult:
    imported: int = 0
    total: int = 0
    skipped: int = 0
    discarded: int = 0
    defaulted: int = 0
    notes: str = ""
    bank_account: str = ""
    transactions: list = field(default_factory=list, repr=False)

    def as_dict(self):
        return {
            "imported": self.imported,
            "total": self.total,
            "skipped": self.skipped,
            "discarded": self.discarded,
            "defaulted": self.defaulted,
            "notes": self.notes,
            "bank_account": self.bank_account,
        }
