from django.urls import path
from . import views

app_name = 'circulation'

urlpatterns = [
    # Loans
    path('loans/', views.loans, name='loans'),
    path('loans/<int:loan_id>/', views.loan_detail, name='loan-detail'),
    path('loans/<int:loan_id>/renew/', views.renew_loan, name='renew-loan'),
    path('loans/<int:loan_id>/return/', views.return_book, name='return-loan'),
    path('loans/<int:loan_id>/lost/', views.mark_lost, name='mark-lost'),
    path('loans/returns/batch/', views.batch_returns, name='batch-returns'),
    path('loans/returns/history/', views.return_history, name='return-history'),
    path('loans/pending-returns/', views.pending_returns, name='pending-returns'),
    path('loans/statistics/', views.statistics_view, name='statistics'),
    path('loans/limits/', views.loan_limits, name='loan-limits'),

    # Persons
    path('persons/<int:person_id>/can-borrow/', views.can_borrow, name='can-borrow'),
    path('persons/<int:person_id>/loans/', views.person_loans, name='person-loans'),

    # Resources and stock
    path('resources/<int:resource_id>/availability/', views.resource_availability, name='resource-availability'),
    path('resources/<int:resource_id>/max-quantity/', views.resource_max_quantity, name='resource-max-quantity'),
    path('resources/<int:resource_id>/loans/', views.resource_loans, name='resource-loans'),
    path('resources/<int:resource_id>/sync-stock/', views.sync_resource_stock, name='sync-stock'),
    path('inventory/', views.check_inventory, name='check_inventory'),

    # Overdue
    path('overdue/', views.check_overdue, name='check_overdue'),
    path('overdue/statistics/', views.overdue_statistics, name='overdue-statistics'),
    path('overdue/near-due/', views.near_due, name='near-due'),
    path('overdue/sweep/', views.sweep_overdue, name='sweep-overdue'),
]
