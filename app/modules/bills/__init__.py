"""
Módulo de Contas a Pagar (Bills)

ENTIDADES:
- Bills: contas a pagar com vencimento, valor e forma de pagamento
- InstallmentBatches: lote das parcelas de um boleto/cheque parcelado
- BillInstallmentAttachments: anexos por parcela

STATUS:
- pending: pendente
- overdue: vencida (pending com vencimento anterior a hoje é apresentada assim)
- paid: paga (terminal)

TRANSIÇÕES:
- pending -> paid | overdue
- overdue -> paid
- paid -> (nenhuma)

PARCELAMENTO:
- O total é dividido igualmente (centavos arredondados, sem redistribuir o resto)
- Vencimentos mensais a partir do primeiro, com o dia limitado ao fim do mês
- Descrições com sufixo "(i/N)"
"""
