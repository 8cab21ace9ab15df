"""
Sample ERP data for tests.

Rows mirror what the generic query endpoint returns for the approval
(SCR) and purchase order item (SC7) tables: CHAR columns padded with
spaces, dates as YYYYMMDD strings, one SCR row per approval level.
"""


def scr_row(
    branch: str,
    number: str,
    level: str,
    user: str,
    name: str,
    status: str,
    doc_type: str = "PC",
    total: float = 1500.0,
    issued: str = "20261001",
    released: str = "",
    note: str = "",
) -> dict:
    """One SCR (approval) row, padded like Protheus CHAR columns"""
    return {
        "CR_FILIAL": branch.ljust(4),
        "CR_NUM": number.ljust(10),
        "CR_TIPO": doc_type,
        "CR_NIVEL": level,
        "CR_USER": user.ljust(6),
        "CR_XNOME": name.ljust(30),
        "CR_STATUS": status,
        "CR_OBS": note,
        "CR_DATALIB": released,
        "CR_TOTAL": total,
        "CR_EMISSAO": issued,
        "CR_XCOMPRA": "Ana Souza".ljust(30),
        "CR_XFORNEC": "Acme Ltda".ljust(40),
    }


# Document 000101: level 01 released, level 02 pending for jsilva, level 03 waiting
BR_DOCUMENT_ROWS = [
    scr_row("01", "000101", "01", "mcosta", "Maria Costa", "03", released="20261002"),
    scr_row("01", "000101", "02", "jsilva", "Joao Silva", "02"),
    scr_row("01", "000101", "03", "pdias", "Paulo Dias", "01"),
]

# Document 000102: jsilva at level 01, already released; level 02 pending for pdias
BR_SECOND_DOCUMENT_ROWS = [
    scr_row("01", "000102", "01", "jsilva", "Joao Silva", "03", released="20261003", total=250.0),
    scr_row("01", "000102", "02", "pdias", "Paulo Dias", "02", total=250.0),
]

CL_DOCUMENT_ROWS = [
    scr_row("02", "CL0001", "01", "jsilva", "Joao Silva", "02", total=99.9),
]

PE_DOCUMENT_ROWS = [
    scr_row("01", "PE0001", "01", "rquispe", "Rosa Quispe", "04", note="Fora do orcamento"),
]

SC7_ROWS = [
    {
        "C7_ITEM": "0002",
        "C7_PRODUTO": "PAR-0001".ljust(15),
        "C7_DESCRI": "Parafuso sextavado".ljust(30),
        "C7_QUANT": 100,
        "C7_PRECO": 0.5,
        "C7_TOTAL": 50.0,
    },
    {
        "C7_ITEM": "0001",
        "C7_PRODUTO": "CHP-0420".ljust(15),
        "C7_DESCRI": "Chapa de aco".ljust(30),
        "C7_QUANT": 10,
        "C7_PRECO": 145.0,
        "C7_TOTAL": 1450.0,
    },
]

# Three-level template used by workflow tests
THREE_LEVEL_TEMPLATE = [
    {"level_order": 1, "name": "Buyer", "approvers": ["jsilva"], "groups": []},
    {"level_order": 2, "name": "Finance", "approvers": [], "groups": ["finance"]},
    {"level_order": 3, "name": "Director", "approvers": ["mcosta"], "groups": []},
]

FINANCE_MEMBERS = ["pdias", "lferraz"]
