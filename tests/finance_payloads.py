"""Raw finance payloads shaped like the OneView finance endpoints."""

from __future__ import annotations


def financing_terms_raw() -> dict:
    return {
        'sections': [
            {
                'sectionId': 's1',
                'sectionName': 'Debt Terms',
                'parameters': [
                    {
                        'parameterId': 'p1',
                        'parameterName': 'Commitment ($)',
                        'loanTypes': {'Term Loan': 1000000, 'Revolver': None},
                        'loanTypeIds': {'Term Loan': 11, 'Revolver': 12},
                    },
                    {
                        'parameterId': 'p2',
                        'parameterName': 'Drawn Fee (%)',
                        'loanTypes': {'Term Loan': '1.5%', 'Revolver': '2%'},
                        'loanTypeIds': {'Term Loan': 21, 'Revolver': 22},
                    },
                ],
            },
            {
                'sectionId': 's2',
                'sectionName': 'Dates',
                'parameters': [
                    {
                        'parameterId': 'p3',
                        'parameterName': 'Maturity Date',
                        'loanTypes': {'Term Loan': '2030-06-30T00:00:00.000Z'},
                        'loanTypeIds': {'Term Loan': 31},
                    }
                ],
            },
        ]
    }


def lender_raw() -> dict:
    return {
        'data': {'Term Loan': {'BankA': {'Commitment ($)': 1000000, 'Outstanding Amount ($)': 400000}}},
        'metadata': {'Term Loan': {'BankA': {'Commitment ($)': {'id': 101}, 'Outstanding Amount ($)': {'id': 102}}}},
    }


def refinancing_raw() -> list[dict]:
    return [
        {'id': 1, 'project_id': 1, 'refi_date': '2021-01-01', 'term_loan_balance': 100},
        {'id': 2, 'project_id': 1, 'refi_date': '2022-01-01'},
        {'id': 3, 'project_id': 1, 'refi_date': '2023-01-01', 'term_loan_balance': 300},
    ]


def tax_equity_raw() -> dict:
    return {
        'data': {
            'TE Fund A': {'Investment Amount': 5000000, 'Flip Date': '2027-01-01'},
            'TE Fund B': {'Investment Amount': 2500000},
        },
        'metadata': {'TE Fund A': {'Investment Amount': {'id': 91, 'tax_equity_type_id': 7, 'parameter_id': 3}}},
    }


def parties_raw() -> dict:
    return {
        'data': {'Lender': {'Administrative Agent': ['BankA', 'BankB'], 'Collateral Agent': ['BankC']}},
        'metadata': {
            'Lender': {
                'Administrative Agent': [
                    {'id': 1, 'counterparty_type_id': 10, 'parameter_id': 20, 'party_instance': 1},
                    {'id': 2, 'counterparty_type_id': 10, 'parameter_id': 20, 'party_instance': 2},
                ],
                'Collateral Agent': [{'id': 3, 'counterparty_type_id': 10, 'parameter_id': 21, 'party_instance': 1}],
            }
        },
    }


def letter_of_credit_raw() -> dict:
    return {
        'data': {'Performance LC': [{'Amount ($)': 250000, 'Issuing Bank': 'BankA'}, {'Amount ($)': 100000}]},
        'metadata': {
            'Performance LC': [
                {'Amount ($)': {'id': 501, 'lc_instance': 1}, 'Issuing Bank': {'id': 502, 'lc_instance': 1}},
                {'Amount ($)': {'id': 503, 'lc_instance': 2}},
            ]
        },
    }
